"""In-process chat surface: pattern listeners with origin-scoped removal."""

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .protocols import ChatMessage, ChatSurface, ListenerHandler

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Listener:
    matcher: re.Pattern[str]
    metadata: dict[str, Any]
    handler: ListenerHandler


class ChatRouter(ChatSurface):
    def __init__(
        self,
        *,
        on_handler_error: Callable[[Exception, ChatMessage], Awaitable[None] | None] | None = None,
    ) -> None:
        self._listeners: list[_Listener] = []
        self._on_handler_error = on_handler_error

    def add_listener(self, matcher: re.Pattern[str], metadata: dict[str, Any], handler: ListenerHandler) -> None:
        self._listeners.append(_Listener(matcher=matcher, metadata=dict(metadata), handler=handler))

    def remove_listeners(self, origin: str) -> int:
        kept = [listener for listener in self._listeners if listener.metadata.get("origin") != origin]
        removed = len(self._listeners) - len(kept)
        self._listeners = kept
        return removed

    def listeners(self, origin: str | None = None) -> list[dict[str, Any]]:
        return [
            dict(listener.metadata)
            for listener in self._listeners
            if origin is None or listener.metadata.get("origin") == origin
        ]

    async def receive(self, message: ChatMessage) -> int:
        """Run every listener whose matcher accepts ``message``; returns how many ran."""
        handled = 0
        # Snapshot so handlers that re-register commands do not affect this dispatch.
        for listener in list(self._listeners):
            match = listener.matcher.match(message.text)
            if match is None:
                continue
            handled += 1
            try:
                result = listener.handler(message, match)
                if inspect.isawaitable(result):
                    await result
            except Exception as error:
                logger.exception("listener %s failed: %s", listener.metadata.get("id"), error)
                if self._on_handler_error is not None:
                    try:
                        callback_result = self._on_handler_error(error, message)
                        if inspect.isawaitable(callback_result):
                            await callback_result
                    except Exception:
                        logger.exception("error callback failed for listener %s", listener.metadata.get("id"))
        return handled
