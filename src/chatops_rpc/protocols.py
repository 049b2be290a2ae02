"""Protocol contracts for the collaborators the bridge plugs into."""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .hooks import RpcCall


@dataclass(frozen=True, slots=True)
class ChatMessage:
    text: str
    user_id: str
    room_id: str


ListenerHandler = Callable[[ChatMessage, "re.Match[str]"], Awaitable[None] | None]


@runtime_checkable
class ChatSurface(Protocol):
    """Text-matching listener registry of the chat adapter."""

    def add_listener(self, matcher: re.Pattern[str], metadata: dict[str, Any], handler: ListenerHandler) -> None: ...

    def remove_listeners(self, origin: str) -> int: ...


@runtime_checkable
class MessageSender(Protocol):
    async def send(self, room_id: str, text: str) -> None: ...

    async def send_snippet(self, room_id: str, text: str) -> None: ...


@runtime_checkable
class KeyValueStore(Protocol):
    """Persistent mapping used for endpoint and prefix state."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


@runtime_checkable
class RequestHookMiddleware(Protocol):
    async def before(self, call: RpcCall) -> None: ...

    async def after(self, call: RpcCall, response: Any) -> None: ...

    async def on_error(self, call: RpcCall, error: Exception) -> None: ...
