from __future__ import annotations

import re

import pytest

from chatops_rpc.protocols import ChatMessage, ChatSurface
from chatops_rpc.router import ChatRouter


def _message(text: str) -> ChatMessage:
    return ChatMessage(text=text, user_id="u1", room_id="r1")


def test_router_satisfies_chat_surface() -> None:
    assert isinstance(ChatRouter(), ChatSurface)


@pytest.mark.asyncio
async def test_router_runs_every_matching_listener() -> None:
    router = ChatRouter()
    calls: list[str] = []

    async def first(_message: ChatMessage, match: re.Match[str]) -> None:
        calls.append(f"first:{match.group('what')}")

    def second(_message: ChatMessage, _match: re.Match[str]) -> None:
        calls.append("second")

    router.add_listener(re.compile(r"^ping (?P<what>\w+)$"), {"id": "a", "origin": "x"}, first)
    router.add_listener(re.compile(r"^ping"), {"id": "b", "origin": "y"}, second)
    router.add_listener(re.compile(r"^pong"), {"id": "c", "origin": "y"}, second)

    assert await router.receive(_message("ping me")) == 2
    assert calls == ["first:me", "second"]


@pytest.mark.asyncio
async def test_router_isolates_handler_failures() -> None:
    errors: list[str] = []

    async def on_error(error: Exception, _message: ChatMessage) -> None:
        errors.append(str(error))

    router = ChatRouter(on_handler_error=on_error)
    calls: list[str] = []

    def broken(_message: ChatMessage, _match: re.Match[str]) -> None:
        raise RuntimeError("boom")

    def healthy(_message: ChatMessage, _match: re.Match[str]) -> None:
        calls.append("healthy")

    router.add_listener(re.compile("go"), {"id": "broken", "origin": "x"}, broken)
    router.add_listener(re.compile("go"), {"id": "healthy", "origin": "x"}, healthy)

    assert await router.receive(_message("go")) == 2
    assert calls == ["healthy"]
    assert errors == ["boom"]


def test_remove_listeners_is_scoped_to_origin() -> None:
    router = ChatRouter()
    router.add_listener(re.compile("a"), {"id": "a", "origin": "https://one"}, lambda *_: None)
    router.add_listener(re.compile("b"), {"id": "b", "origin": "https://one"}, lambda *_: None)
    router.add_listener(re.compile("c"), {"id": "c", "origin": "https://two"}, lambda *_: None)

    assert router.remove_listeners("https://one") == 2
    assert router.remove_listeners("https://one") == 0
    assert [listener["id"] for listener in router.listeners()] == ["c"]
