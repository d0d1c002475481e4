"""Exception types raised inside the core and converted at workflow boundaries."""

from __future__ import annotations


class ContractRagError(Exception):
    """Base class for errors raised by this package."""


class InvalidResponseFormat(ContractRagError):
    """The completion provider returned text without a usable JSON object."""

    def __init__(self, message: str = "Invalid validation response format") -> None:
        super().__init__(message)


class ProviderConfigurationError(ContractRagError):
    """A provider backend is selected but cannot be constructed."""
