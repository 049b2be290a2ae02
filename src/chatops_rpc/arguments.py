"""Trailing ``--key value`` argument grammar."""

from __future__ import annotations

from collections.abc import Mapping

_MARKER = " --"
_FLAG_VALUE = "true"

MATCHER_SUFFIX = r"(?: --.+)?"


def matcher_suffix() -> str:
    """Optional pattern fragment covering every trailing `` --anything`` span.

    One span runs to the end of the line, so later flags are part of it and
    the fragment is never repeated. Generic flags never need to be declared
    by a method's own pattern.
    """
    return MATCHER_SUFFIX


def extract_generic_arguments(text: str) -> tuple[str, dict[str, str]]:
    """Split trailing ``--key value`` spans off ``text``.

    Spans are consumed right to left. A key without a value maps to
    ``"true"``. When a key repeats, the leftmost occurrence wins because it
    is inserted last.
    """
    arguments: dict[str, str] = {}
    remaining = text
    while True:
        index = remaining.rfind(_MARKER)
        if index == -1:
            return remaining, arguments

        span = remaining[index + len(_MARKER) :]
        key, separator, value = span.partition(" ")
        arguments[key] = value if separator else _FLAG_VALUE
        remaining = remaining[:index]


def format_generic_arguments(arguments: Mapping[str, object]) -> str:
    parts: list[str] = []
    for key, value in arguments.items():
        if value is True or value == _FLAG_VALUE:
            parts.append(f" --{key}")
            continue
        parts.append(f" --{key} {value}")
    return "".join(parts)
