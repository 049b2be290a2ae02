"""Configuration helpers for the chatops RPC bridge."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigError

DEFAULT_ROBOT_NAME = "hubot"
DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_MAX_POLL_INTERVAL_SECONDS = 3600.0
DEFAULT_TIMEOUT_SECONDS = 150.0
DEFAULT_SNIPPET_THRESHOLD = 4000


@dataclass(slots=True)
class BridgeConfig:
    robot_name: str = DEFAULT_ROBOT_NAME
    robot_alias: str | None = None
    private_key: str | None = None
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_poll_interval_seconds: float = DEFAULT_MAX_POLL_INTERVAL_SECONDS
    request_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    allow_insecure_urls: bool = False
    snippet_threshold: int = DEFAULT_SNIPPET_THRESHOLD
    store_path: Path | None = None

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        robot_name = _trim_or_default(os.getenv("CHATOPS_RPC_ROBOT_NAME"), DEFAULT_ROBOT_NAME)
        robot_alias = _trim_or_none(os.getenv("CHATOPS_RPC_ROBOT_ALIAS"))

        private_key = _trim_or_none(os.getenv("CHATOPS_RPC_PRIVATE_KEY"))
        key_path = _trim_or_none(os.getenv("CHATOPS_RPC_PRIVATE_KEY_PATH"))
        if private_key is None and key_path is not None:
            private_key = _read_key_file(key_path)

        store_path = _trim_or_none(os.getenv("CHATOPS_RPC_STORE_PATH"))

        return cls(
            robot_name=robot_name,
            robot_alias=robot_alias,
            private_key=_unescape_pem(private_key),
            poll_interval_seconds=_seconds_from_ms(
                os.getenv("CHATOPS_RPC_POLL_INTERVAL_MS"), DEFAULT_POLL_INTERVAL_SECONDS
            ),
            max_poll_interval_seconds=_seconds_from_ms(
                os.getenv("CHATOPS_RPC_MAX_POLL_INTERVAL_MS"), DEFAULT_MAX_POLL_INTERVAL_SECONDS
            ),
            request_timeout_seconds=_seconds_from_ms(os.getenv("CHATOPS_RPC_TIMEOUT_MS"), DEFAULT_TIMEOUT_SECONDS),
            allow_insecure_urls=_parse_bool(os.getenv("CHATOPS_RPC_ALLOW_INSECURE")),
            snippet_threshold=_parse_positive_int(os.getenv("CHATOPS_RPC_SNIPPET_THRESHOLD"))
            or DEFAULT_SNIPPET_THRESHOLD,
            store_path=Path(store_path) if store_path else None,
        )

    @classmethod
    def from_file(cls, config_path: str | Path) -> "BridgeConfig":
        payload = load_config_file(config_path)

        private_key = _trim_or_none(payload.get("privateKey"))
        key_path = _trim_or_none(payload.get("privateKeyPath"))
        if private_key is None and key_path is not None:
            private_key = _read_key_file(key_path)

        store_path = _trim_or_none(payload.get("storePath"))
        return cls(
            robot_name=_trim_or_default(payload.get("robotName"), DEFAULT_ROBOT_NAME),
            robot_alias=_trim_or_none(payload.get("robotAlias")),
            private_key=private_key,
            poll_interval_seconds=_seconds_from_ms(payload.get("pollIntervalMs"), DEFAULT_POLL_INTERVAL_SECONDS),
            max_poll_interval_seconds=_seconds_from_ms(
                payload.get("maxPollIntervalMs"), DEFAULT_MAX_POLL_INTERVAL_SECONDS
            ),
            request_timeout_seconds=_seconds_from_ms(payload.get("timeoutMs"), DEFAULT_TIMEOUT_SECONDS),
            allow_insecure_urls=payload.get("allowInsecureUrls") is True,
            snippet_threshold=_parse_positive_int(payload.get("snippetThreshold")) or DEFAULT_SNIPPET_THRESHOLD,
            store_path=Path(store_path) if store_path else None,
        )


def load_config_file(config_path: str | Path) -> dict[str, Any]:
    path = Path(config_path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            parsed = json.load(handle)
    except (OSError, json.JSONDecodeError) as error:
        raise ConfigError(f"unable to read config file {path}: {error}") from error

    if not isinstance(parsed, dict):
        raise ConfigError(f"config file {path} must contain a JSON object")
    return parsed


def _read_key_file(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as error:
        raise ConfigError(f"unable to read private key file {path}: {error}") from error


def _unescape_pem(value: str | None) -> str | None:
    # Keys passed through environment variables often carry literal "\n".
    if value is None or "\\n" not in value:
        return value
    return value.replace("\\n", "\n")


def _trim_or_none(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed if trimmed else None


def _trim_or_default(value: Any, fallback: str) -> str:
    if not isinstance(value, str):
        return fallback
    trimmed = value.strip()
    return trimmed if trimmed else fallback


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _seconds_from_ms(value: Any, fallback: float) -> float:
    parsed = _parse_positive_int(value)
    return (parsed / 1000.0) if parsed else fallback


def _parse_positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        try:
            parsed = int(value)
        except ValueError:
            return None
        return parsed if parsed > 0 else None
    return None
