"""Completion capability interface and the LangChain chat-model adapter."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Completer(ABC):
    """Turns a prompt into raw model text."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return the raw response text, which may wrap JSON in prose."""


class LangChainCompleter(Completer):
    """Adapter over a LangChain chat model (`ainvoke` returning a message)."""

    def __init__(self, llm: Any) -> None:
        self.llm = llm

    async def complete(self, prompt: str) -> str:
        message = await self.llm.ainvoke(prompt)
        return _message_text(message)


def _message_text(message: Any) -> str:
    if isinstance(message, str):
        return message
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)
