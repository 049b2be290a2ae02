"""Operator-facing ``rpc ...`` chat commands."""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable

from .arguments import extract_generic_arguments
from .dispatcher import CommandDispatcher
from .errors import PrefixConflictError
from .patterns import compile_command
from .protocols import ChatMessage, ChatSurface, MessageSender
from .registry import EndpointRegistry
from .scheduler import PollScheduler

logger = logging.getLogger(__name__)

ADMIN_ORIGIN = "chatops-rpc"

AdminHandler = Callable[[ChatMessage, "re.Match[str]"], Awaitable[None]]


class OperatorCommands:
    """Manage endpoints from chat: add, remove, prefix, inspect, reload."""

    def __init__(
        self,
        *,
        registry: EndpointRegistry,
        dispatcher: CommandDispatcher,
        scheduler: PollScheduler,
        sender: MessageSender,
        allow_insecure_urls: bool = False,
        snippet_threshold: int = 4000,
    ) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._scheduler = scheduler
        self._sender = sender
        self._allow_insecure_urls = allow_insecure_urls
        self._snippet_threshold = snippet_threshold

    def routes(self) -> list[tuple[str, str, str, AdminHandler]]:
        return [
            ("rpc.list", r"rpc list", "rpc list - List RPC endpoints and their status", self.list_endpoints),
            (
                "rpc.add",
                r"rpc add (?P<url>\S+)",
                "rpc add <url> [--prefix <prefix>] - Poll an endpoint for chatops methods",
                self.add_endpoint,
            ),
            ("rpc.remove", r"rpc remove (?P<url>\S+)", "rpc remove <url> - Stop polling an endpoint", self.remove_endpoint),
            (
                "rpc.set_prefix",
                r"rpc set prefix (?P<url>\S+)(?: (?P<prefix>\S+))?",
                "rpc set prefix <url> [<prefix>] - Scope an endpoint's commands under a prefix, or clear it",
                self.set_prefix,
            ),
            ("rpc.debug", r"rpc debug (?P<url>\S+)", "rpc debug <url> - Show what is known about an endpoint", self.debug_endpoint),
            ("rpc.reload", r"rpc (?:hup|reload)", "rpc reload - Refetch every endpoint now", self.reload),
            (
                "rpc.wtf",
                r"rpc (?:wtf|what happens for) (?P<text>.+)",
                "rpc wtf <text> - Explain which endpoint would handle <text>",
                self.explain,
            ),
            ("rpc.raw", r"rpc raw (?P<id>\S+)", "rpc raw <id> [--flags] - Call a method by id", self.raw),
        ]

    def register(self, surface: ChatSurface) -> None:
        surface.remove_listeners(ADMIN_ORIGIN)
        for command_id, pattern, help_text, handler in self.routes():
            matcher = compile_command(pattern, self._dispatcher.prefix_pattern)
            metadata = {
                "id": command_id,
                "origin": ADMIN_ORIGIN,
                "help": f"{self._dispatcher.robot_name} {help_text}",
                "source": pattern,
            }
            surface.add_listener(matcher, metadata, handler)

    def help_lines(self) -> list[str]:
        return [f"{self._dispatcher.robot_name} {help_text}" for _, _, help_text, _ in self.routes()]

    async def list_endpoints(self, message: ChatMessage, _match: re.Match[str]) -> None:
        endpoints = self._registry.all()
        if not endpoints:
            await self._reply(message, "No RPC endpoints configured. Add one with `rpc add <url>`.")
            return

        lines = []
        for endpoint in sorted(endpoints, key=lambda item: item.url):
            prefix = f"prefix {endpoint.prefix}" if endpoint.prefix else "no prefix"
            status = endpoint.last_response or "Not fetched yet."
            updated = f" (updated {endpoint.updated_at})" if endpoint.updated_at else ""
            lines.append(f"{endpoint.url} [{prefix}]: {status}{updated}")
        await self._reply(message, "\n".join(lines))

    async def add_endpoint(self, message: ChatMessage, match: re.Match[str]) -> None:
        _, flags = extract_generic_arguments(message.text)
        url = match.group("url")
        prefix = flags.get("prefix")

        if not url.startswith("https") and not self._allow_insecure_urls:
            await self._reply(message, f"Endpoints must use https; refusing to add {url}.")
            return
        if url in self._registry:
            await self._reply(message, f"I'm already polling {url}.")
            return
        if prefix is not None:
            try:
                self._check_prefix(url, prefix)
            except PrefixConflictError as error:
                await self._reply(message, str(error))
                return

        self._registry.add(url)
        if prefix is not None:
            self._registry.assign_prefix(url, prefix)
        self._scheduler.start(url)
        logger.info("added endpoint %s (prefix %s)", url, prefix)
        await self._reply(message, f"Okay, I'll poll {url} for methods.")

    async def remove_endpoint(self, message: ChatMessage, match: re.Match[str]) -> None:
        url = match.group("url")
        if url not in self._registry:
            await self._reply(message, f"I'm not polling {url}.")
            return

        self._scheduler.stop(url)
        self._dispatcher.remove_origin(url)
        self._registry.remove(url)
        logger.info("removed endpoint %s", url)
        await self._reply(message, f"Okay, I removed {url} and its commands.")

    async def set_prefix(self, message: ChatMessage, match: re.Match[str]) -> None:
        url = match.group("url")
        prefix = match.group("prefix")
        endpoint = self._registry.get(url)
        if endpoint is None:
            await self._reply(message, f"I'm not polling {url}.")
            return
        if prefix is None:
            self._registry.clear_prefix(url)
            reply = f"Okay, {url} no longer uses a prefix."
        else:
            try:
                self._check_prefix(url, prefix)
            except PrefixConflictError as error:
                await self._reply(message, str(error))
                return
            self._registry.assign_prefix(url, prefix)
            reply = f"Okay, {url} now uses the prefix {prefix}."

        if endpoint.namespace is not None:
            self._dispatcher.on_schema_applied(url)
        self._scheduler.fetch_now(url)
        await self._reply(message, reply)

    async def debug_endpoint(self, message: ChatMessage, match: re.Match[str]) -> None:
        url = match.group("url")
        endpoint = self._registry.get(url)
        if endpoint is None:
            await self._reply(message, f"I'm not polling {url}.")
            return

        lines = [
            f"URL: {endpoint.url}",
            f"Prefix: {endpoint.prefix or '(none)'}",
            f"Namespace: {endpoint.namespace or '(unknown)'}",
            f"Last response: {endpoint.last_response or '(none)'}",
            f"Updated at: {endpoint.updated_at or '(never)'}",
        ]
        interval = self._scheduler.interval_for(url)
        if interval is not None:
            lines.append(f"Next poll in: {interval:g}s")
        commands = self._dispatcher.commands(url)
        if commands:
            lines.append("Commands:")
            for command in commands:
                lines.append(f"  {command.id}: {command.source} -> {command.url}")
        await self._reply(message, "\n".join(lines))

    async def reload(self, message: ChatMessage, _match: re.Match[str]) -> None:
        endpoints = self._registry.all()
        for endpoint in endpoints:
            self._scheduler.fetch_now(endpoint.url)
        noun = "endpoint" if len(endpoints) == 1 else "endpoints"
        await self._reply(message, f"Reloading {len(endpoints)} {noun}.")

    async def explain(self, message: ChatMessage, match: re.Match[str]) -> None:
        text = match.group("text").strip()
        explanation = self._dispatcher.explain(text, message.user_id, message.room_id)
        if explanation is None:
            await self._reply(message, f"Nothing would happen for `{text}`.")
            return
        await self._reply(message, explanation.render(text))

    async def raw(self, message: ChatMessage, match: re.Match[str]) -> None:
        _, flags = extract_generic_arguments(message.text)
        await self._dispatcher.invoke_raw(match.group("id"), flags, message.user_id, message.room_id)

    def _check_prefix(self, url: str, prefix: str) -> None:
        holder = self._registry.url_for_prefix(prefix)
        if holder is not None and holder != url:
            raise PrefixConflictError(prefix, holder)

    async def _reply(self, message: ChatMessage, text: str) -> None:
        if len(text) > self._snippet_threshold:
            await self._sender.send_snippet(message.room_id, text)
            return
        await self._sender.send(message.room_id, text)
