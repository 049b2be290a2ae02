"""Error hierarchy for the chatops RPC bridge."""

from __future__ import annotations

from typing import Any

STATUS_TEXT_LIMIT = 150
INVOCATION_TEXT_LIMIT = 300


class ChatopsRpcError(Exception):
    """Base class for all bridge errors."""


class ConfigError(ChatopsRpcError):
    """Raised when the bridge cannot start, for example without a signing key."""


class TransportError(ChatopsRpcError):
    """Raised on network/transport failures."""


class ClientTimeoutError(TransportError):
    """Raised when request times out."""


class HttpStatusError(TransportError):
    """Raised when an endpoint answers with an unexpected HTTP status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"{status_code}: {body}")
        self.status_code = status_code
        self.body = body


class SchemaError(ChatopsRpcError):
    """Raised when a fetched schema cannot be applied."""


class InvocationError(ChatopsRpcError):
    """Raised when a remote method call cannot produce a chat reply."""

    def __init__(self, message: str, *, status_code: int | None = None, raw: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.raw = raw


class PrefixConflictError(ChatopsRpcError):
    """Raised when a prefix is already owned by another endpoint."""

    def __init__(self, prefix: str, holder: str) -> None:
        super().__init__(f"The prefix {prefix} is already in use by {holder}")
        self.prefix = prefix
        self.holder = holder


def summarize_error_text(text: Any, limit: int = STATUS_TEXT_LIMIT) -> str:
    """Escape newlines and cap the length of remote-provided text."""
    value = text if isinstance(text, str) else str(text)
    escaped = value.replace("\r", "\\r").replace("\n", "\\n")
    if len(escaped) <= limit:
        return escaped
    return escaped[: max(0, limit - 3)] + "..."
