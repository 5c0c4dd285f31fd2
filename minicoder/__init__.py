"""minicoder: a minimal JSON-operation coding agent."""

from .report import (
    AgentError,
    ConfigError,
    EmptyResponseError,
    MissingCredentialError,
    ParseError,
    ProviderError,
)
from .session import Result, Session

__all__ = [
    "AgentError",
    "ConfigError",
    "EmptyResponseError",
    "MissingCredentialError",
    "ParseError",
    "ProviderError",
    "Result",
    "Session",
]
