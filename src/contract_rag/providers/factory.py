"""Builds provider adapters for the backend selected in settings."""

from __future__ import annotations

from contract_rag.config import ProviderConfig, ProviderKind
from contract_rag.errors import ProviderConfigurationError
from contract_rag.providers.completer import Completer, LangChainCompleter
from contract_rag.providers.embedder import Embedder, LangChainEmbedder


def create_embedder(config: ProviderConfig) -> Embedder:
    if config.kind is ProviderKind.OLLAMA:
        from langchain_ollama import OllamaEmbeddings

        return LangChainEmbedder(
            OllamaEmbeddings(model=config.embedding_model, base_url=config.base_url)
        )

    if not config.api_key:
        raise ProviderConfigurationError("OPENAI_API_KEY is required for the openai provider")

    from langchain_openai import OpenAIEmbeddings

    return LangChainEmbedder(
        OpenAIEmbeddings(
            model=config.embedding_model,
            api_key=config.api_key,
            base_url=config.base_url,
        )
    )


def create_completer(config: ProviderConfig) -> Completer:
    if config.kind is ProviderKind.OLLAMA:
        from langchain_ollama import ChatOllama

        return LangChainCompleter(
            ChatOllama(
                model=config.model,
                base_url=config.base_url,
                temperature=config.temperature,
                num_ctx=config.num_ctx,
                keep_alive="5m",
            )
        )

    if not config.api_key:
        raise ProviderConfigurationError("OPENAI_API_KEY is required for the openai provider")

    from langchain_openai import ChatOpenAI

    return LangChainCompleter(
        ChatOpenAI(
            model=config.model,
            temperature=config.temperature,
            api_key=config.api_key,
            base_url=config.base_url,
        )
    )
