"""Contract RAG core package."""

from .config import ProviderKind, Settings
from .runtime import ContractRagRuntime, build_runtime

__all__ = ["ContractRagRuntime", "ProviderKind", "Settings", "build_runtime"]
