from __future__ import annotations

import time

import pytest

from chatops_rpc.errors import SchemaError
from chatops_rpc.patterns import (
    compile_command,
    compile_help_command,
    invocation_prefix,
    strip_anchors,
    to_python_pattern,
)

PREFIX = invocation_prefix("hubot")


def test_compiled_command_matches_whole_invocation_only() -> None:
    matcher = compile_command("foo", PREFIX)

    assert matcher.match("hubot foo")
    assert matcher.match("hubot foo --x 1")
    assert not matcher.match("hubot foo bar")
    assert not matcher.match("foobar")


def test_invocation_prefix_accepts_addressing_styles() -> None:
    matcher = compile_command("ping", invocation_prefix("hubot", "/"))

    for text in ("hubot ping", "@hubot: ping", "hubot, ping", "HUBOT PING", "/ping", "  hubot ping"):
        assert matcher.match(text), text
    assert not matcher.match("robot ping")


def test_invocation_prefix_escapes_metacharacters() -> None:
    matcher = compile_command("ping", invocation_prefix("bot.io"))
    assert matcher.match("bot.io ping")
    assert not matcher.match("botxio ping")


def test_endpoint_prefix_is_required_when_assigned() -> None:
    matcher = compile_command("deploy (?<app>\\S+)", PREFIX, "ops")

    match = matcher.match("hubot ops deploy web")
    assert match is not None
    assert match.group("app") == "web"
    assert not matcher.match("hubot deploy web")


def test_over_anchored_patterns_are_stripped() -> None:
    assert strip_anchors("^status$") == "status"
    assert strip_anchors("cost \\$") == "cost \\$"
    assert compile_command("^status$", PREFIX).match("hubot status")


def test_named_groups_are_translated() -> None:
    assert to_python_pattern("(?<app>\\w+) (?<=x)(?<!y)") == "(?P<app>\\w+) (?<=x)(?<!y)"


def test_alternation_stays_scoped_to_method_body() -> None:
    matcher = compile_command("start|stop", PREFIX)
    assert matcher.match("hubot stop")
    assert not matcher.match("stop")


def test_invalid_pattern_raises_schema_error() -> None:
    with pytest.raises(SchemaError):
        compile_command("deploy (", PREFIX)


def test_help_command_uses_prefix_or_namespace() -> None:
    assert compile_help_command(PREFIX, "ops", "deployments").match("hubot ops")
    assert not compile_help_command(PREFIX, "ops", "deployments").match("hubot deployments")
    assert compile_help_command(PREFIX, None, "deployments").match("hubot deployments")


def test_many_flags_before_a_newline_fail_fast() -> None:
    matcher = compile_command("foo", PREFIX)
    text = "hubot foo" + " --a" * 200

    assert matcher.match(text)
    started = time.perf_counter()
    assert matcher.match(text + "\nx") is None
    assert time.perf_counter() - started < 1.0
