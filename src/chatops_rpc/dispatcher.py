"""Compile endpoint schemas into chat commands and invoke remote methods."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from .arguments import extract_generic_arguments, format_generic_arguments
from .errors import (
    INVOCATION_TEXT_LIMIT,
    InvocationError,
    SchemaError,
    TransportError,
    summarize_error_text,
)
from .models import Endpoint
from .patterns import compile_command, compile_help_command, invocation_prefix
from .protocols import ChatMessage, ChatSurface, MessageSender
from .registry import EndpointRegistry
from .signing import Signer
from .transport import RpcResponse, RpcTransport

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 150.0
DEFAULT_SNIPPET_THRESHOLD = 4000

OutcomeKind = Literal["reply", "no_output", "error", "help"]


@dataclass(slots=True)
class CompiledCommand:
    id: str
    origin: str
    method_name: str | None
    matcher: re.Pattern[str]
    help: str | None
    url: str
    source: str
    error_response: str | None = None
    is_help: bool = False
    prefix: str | None = None

    def metadata(self) -> dict[str, Any]:
        return {"id": self.id, "origin": self.origin, "help": self.help, "source": self.source}


@dataclass(slots=True)
class RpcOutcome:
    kind: OutcomeKind
    text: str


@dataclass(slots=True)
class Explanation:
    command: CompiledCommand
    payload: dict[str, Any]

    def render(self, text: str) -> str:
        return "\n".join(
            [
                f"`{text}` would call {self.command.id} from {self.command.origin}",
                f"Pattern: {self.command.source}",
                f"URL: {self.command.url}",
                f"Payload: {json.dumps(self.payload, sort_keys=True)}",
            ]
        )


def invocation_url(base_url: str, path: str | None) -> str:
    if not path:
        return base_url
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def classify_response(response: RpcResponse) -> str | None:
    """Map an RPC response to chat text.

    Returns ``None`` when the method ran but produced no output. Raises
    ``InvocationError`` for responses that cannot be shown as a reply.
    """
    try:
        parsed = response.json()
    except ValueError as error:
        raise InvocationError(
            summarize_error_text(response.text, INVOCATION_TEXT_LIMIT),
            status_code=response.status_code,
            raw=response.text,
        ) from error

    if parsed is None:
        raise InvocationError("Invalid output, null", status_code=response.status_code)

    if isinstance(parsed, dict):
        error_body = parsed.get("error")
        if isinstance(error_body, dict) and error_body.get("message") is not None:
            return _as_text(error_body["message"])

    if not isinstance(parsed, dict) or "result" not in parsed:
        raise InvocationError(
            f"Invalid response, missing result (HTTP code: {response.status_code})",
            status_code=response.status_code,
            raw=parsed,
        )

    result = parsed["result"]
    if result is None or result == "":
        return None
    return _as_text(result)


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True)


def _qualified_id(command: CompiledCommand) -> str:
    if command.prefix:
        return f"{command.prefix}.{command.id}"
    return f"{command.id} ({command.origin})"


class CommandDispatcher:
    """Owns the compiled commands for every endpoint.

    Commands are indexed by origin (the endpoint URL). Replacing an origin's
    set happens without awaiting, so no chat message can observe a mix of
    old and new commands for one endpoint.
    """

    def __init__(
        self,
        registry: EndpointRegistry,
        surface: ChatSurface,
        sender: MessageSender,
        transport: RpcTransport,
        signer: Signer,
        *,
        robot_name: str,
        robot_alias: str | None = None,
        request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        snippet_threshold: int = DEFAULT_SNIPPET_THRESHOLD,
    ) -> None:
        self._registry = registry
        self._surface = surface
        self._sender = sender
        self._transport = transport
        self._signer = signer
        self.robot_name = robot_name
        self.prefix_pattern = invocation_prefix(robot_name, robot_alias)
        self._timeout = request_timeout_seconds
        self._snippet_threshold = snippet_threshold
        self._commands: dict[str, dict[str, CompiledCommand]] = {}
        self._help: dict[str, list[str]] = {}

    def commands(self, origin: str | None = None) -> list[CompiledCommand]:
        if origin is None:
            return [command for by_id in self._commands.values() for command in by_id.values()]
        return list(self._commands.get(origin, {}).values())

    def command(self, command_id: str) -> CompiledCommand | None:
        matches = self.resolve(command_id)
        return matches[0] if len(matches) == 1 else None

    def resolve(self, command_id: str) -> list[CompiledCommand]:
        """Every command answering to ``command_id``.

        Endpoints may share a namespace, so a bare id can name several
        commands. ``<prefix>.<id>`` picks the one under that endpoint prefix.
        """
        matches = [by_id[command_id] for by_id in self._commands.values() if command_id in by_id]
        if matches:
            return matches
        for by_id in self._commands.values():
            for command in by_id.values():
                if command.prefix and command_id == f"{command.prefix}.{command.id}":
                    return [command]
        return []

    def help_lines(self) -> list[str]:
        lines: list[str] = []
        for origin in sorted(self._help):
            lines.extend(self._help[origin])
        return lines

    def compile_endpoint(self, endpoint: Endpoint) -> list[CompiledCommand]:
        namespace = endpoint.namespace or endpoint.url
        scoped = f"{endpoint.prefix} " if endpoint.prefix else ""
        compiled: list[CompiledCommand] = []
        for name, method in endpoint.methods.items():
            try:
                matcher = compile_command(method.regex, self.prefix_pattern, endpoint.prefix)
            except SchemaError as error:
                logger.warning("skipping %s.%s from %s: %s", namespace, name, endpoint.url, error)
                continue
            compiled.append(
                CompiledCommand(
                    id=f"{namespace}.{name}",
                    origin=endpoint.url,
                    method_name=name,
                    matcher=matcher,
                    help=f"{self.robot_name} {scoped}{method.help}" if method.help else None,
                    url=invocation_url(endpoint.url, method.path),
                    source=method.regex,
                    error_response=method.error_response,
                    prefix=endpoint.prefix,
                )
            )

        compiled.append(
            CompiledCommand(
                id=f"{namespace}:help",
                origin=endpoint.url,
                method_name=None,
                matcher=compile_help_command(self.prefix_pattern, endpoint.prefix, namespace),
                help=f"{self.robot_name} {endpoint.prefix or namespace} - {endpoint.help or 'List commands'}",
                url=endpoint.url,
                source=endpoint.prefix or namespace,
                is_help=True,
                prefix=endpoint.prefix,
            )
        )
        return compiled

    def on_schema_applied(self, url: str) -> None:
        endpoint = self._registry.get(url)
        if endpoint is None:
            self.remove_origin(url)
            return

        compiled = self.compile_endpoint(endpoint)
        self.remove_origin(url)
        for command in compiled:
            self._surface.add_listener(command.matcher, command.metadata(), self._listener_for(command))
        self._commands[url] = {command.id: command for command in compiled}
        self._help[url] = [command.help for command in compiled if command.help and not command.is_help]
        logger.debug("registered %d commands for %s", len(compiled), url)

    def remove_origin(self, url: str) -> int:
        removed = self._surface.remove_listeners(url)
        self._commands.pop(url, None)
        self._help.pop(url, None)
        return removed

    def build_payload(
        self,
        command: CompiledCommand,
        text: str,
        user_id: str,
        room_id: str,
    ) -> dict[str, Any]:
        remaining, flags = extract_generic_arguments(text)
        match = command.matcher.match(remaining) or command.matcher.match(text)
        captures: dict[str, Any] = {}
        if match is not None:
            captures = {key: value for key, value in match.groupdict().items() if value is not None}
        return self._payload(command, {**captures, **flags}, user_id, room_id)

    def _payload(
        self,
        command: CompiledCommand,
        params: Mapping[str, Any],
        user_id: str,
        room_id: str,
    ) -> dict[str, Any]:
        return {"user": user_id, "room_id": room_id, "params": dict(params), "method": command.method_name}

    async def invoke(self, command: CompiledCommand, text: str, user_id: str, room_id: str) -> RpcOutcome:
        if command.is_help:
            return await self._reply(room_id, RpcOutcome(kind="help", text=self._help_text(command)))
        payload = self.build_payload(command, text, user_id, room_id)
        return await self._call(command, payload, text, room_id)

    async def invoke_raw(
        self,
        command_id: str,
        flags: Mapping[str, str],
        user_id: str,
        room_id: str,
    ) -> RpcOutcome:
        matches = [command for command in self.resolve(command_id) if not command.is_help]
        if not matches:
            return await self._reply(
                room_id, RpcOutcome(kind="error", text=f"No command with id {command_id}")
            )
        if len(matches) > 1:
            choices = ", ".join(sorted(_qualified_id(command) for command in matches))
            return await self._reply(
                room_id,
                RpcOutcome(kind="error", text=f"{command_id} is served by several endpoints; use one of {choices}"),
            )
        command = matches[0]
        payload = self._payload(command, flags, user_id, room_id)
        text = f"{command_id}{format_generic_arguments(flags)}"
        return await self._call(command, payload, text, room_id)

    def explain(self, text: str, user_id: str, room_id: str) -> Explanation | None:
        candidates = [text, f"{self.robot_name} {text}"]
        for candidate in candidates:
            for command in self.commands():
                if command.matcher.match(candidate) is None:
                    continue
                if command.is_help:
                    return Explanation(command=command, payload={})
                return Explanation(command=command, payload=self.build_payload(command, candidate, user_id, room_id))
        return None

    async def _call(self, command: CompiledCommand, payload: dict[str, Any], text: str, room_id: str) -> RpcOutcome:
        body = json.dumps(payload)
        signed = self._signer.sign(command.url, body)
        try:
            response = await self._transport.post(
                command.url, body, headers=signed.headers(), timeout=self._timeout
            )
        except TransportError as error:
            message = command.error_response or summarize_error_text(str(error), INVOCATION_TEXT_LIMIT)
            return await self._report_error(command, room_id, message, verbatim=bool(command.error_response))

        try:
            reply = classify_response(response)
        except InvocationError as error:
            return await self._report_error(command, room_id, str(error))

        if reply is None:
            return await self._reply(room_id, RpcOutcome(kind="no_output", text=f"`{text}` returned no output."))
        return await self._reply(room_id, RpcOutcome(kind="reply", text=reply))

    async def _report_error(
        self,
        command: CompiledCommand,
        room_id: str,
        message: str,
        *,
        verbatim: bool = False,
    ) -> RpcOutcome:
        logger.warning("invocation of %s failed: %s", command.id, message)
        text = message if verbatim else f"Error invoking {command.id}: {message}"
        return await self._reply(room_id, RpcOutcome(kind="error", text=text))

    async def _reply(self, room_id: str, outcome: RpcOutcome) -> RpcOutcome:
        if len(outcome.text) > self._snippet_threshold:
            await self._sender.send_snippet(room_id, outcome.text)
        else:
            await self._sender.send(room_id, outcome.text)
        return outcome

    def _help_text(self, command: CompiledCommand) -> str:
        endpoint = self._registry.get(command.origin)
        lines = [endpoint.help] if endpoint is not None and endpoint.help else []
        lines.extend(self._help.get(command.origin, []))
        if len(lines) == 0:
            return f"No help available for {command.source}"
        return "\n".join(lines)

    def _listener_for(self, command: CompiledCommand):
        async def handle(message: ChatMessage, _match: re.Match[str]) -> None:
            await self.invoke(command, message.text, message.user_id, message.room_id)

        return handle
