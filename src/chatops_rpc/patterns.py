"""Compile remote method patterns into anchored chat command matchers."""

from __future__ import annotations

import re

from .arguments import matcher_suffix
from .errors import SchemaError

# Schemas are usually written for engines that spell named groups (?<name>...).
_NAMED_GROUP = re.compile(r"\(\?<([A-Za-z_][A-Za-z0-9_]*)>")


def invocation_prefix(name: str, alias: str | None = None) -> str:
    """Pattern for the bot's own addressing convention.

    Accepts an optional ``@``, then the alias or name with an optional
    ``:`` or ``,``, then optional whitespace.
    """
    names = [f"{re.escape(alias)}[:,]?"] if alias else []
    names.append(f"{re.escape(name)}[:,]?")
    return rf"\s*@?(?:{'|'.join(names)})\s*"


def strip_anchors(source: str) -> str:
    if source.startswith("^"):
        source = source[1:]
    if source.endswith("$") and not source.endswith("\\$"):
        source = source[:-1]
    return source


def to_python_pattern(source: str) -> str:
    return _NAMED_GROUP.sub(r"(?P<\1>", source)


def _assemble(body: str, prefix_pattern: str, endpoint_prefix: str | None) -> re.Pattern[str]:
    scoped = f"{re.escape(endpoint_prefix)} " if endpoint_prefix else ""
    pattern = f"^{prefix_pattern}{scoped}(?:{body}){matcher_suffix()}\\Z"
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as error:
        raise SchemaError(f"invalid command pattern {body!r}: {error}") from error


def compile_command(
    pattern_source: str,
    prefix_pattern: str,
    endpoint_prefix: str | None = None,
) -> re.Pattern[str]:
    body = to_python_pattern(strip_anchors(pattern_source))
    return _assemble(body, prefix_pattern, endpoint_prefix)


def compile_help_command(
    prefix_pattern: str,
    endpoint_prefix: str | None,
    namespace: str,
) -> re.Pattern[str]:
    return _assemble(re.escape(endpoint_prefix or namespace), prefix_pattern, None)
