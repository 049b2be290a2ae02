from __future__ import annotations

import json
from pathlib import Path

import pytest

from chatops_rpc.models import EndpointSchema
from chatops_rpc.registry import ENDPOINTS_KEY, PREFIXES_KEY, EndpointRegistry
from chatops_rpc.store import JsonFileStore, MemoryStore


def _schema(namespace: str = "deploy", **methods: str) -> EndpointSchema:
    return EndpointSchema.model_validate(
        {
            "namespace": namespace,
            "help": "Deployments",
            "methods": {name: {"regex": regex, "help": f"{name} things"} for name, regex in methods.items()},
        }
    )


def test_add_and_remove_endpoint() -> None:
    registry = EndpointRegistry(MemoryStore())
    endpoint = registry.add("https://example.com/_chatops")

    assert endpoint.prefix is None
    assert endpoint.methods == {}
    assert "https://example.com/_chatops" in registry
    assert registry.remove("https://example.com/_chatops") is True
    assert registry.get("https://example.com/_chatops") is None
    assert registry.remove("https://example.com/_chatops") is False


def test_reverse_prefix_lookup() -> None:
    registry = EndpointRegistry(MemoryStore())
    registry.add("https://a.example.com")
    registry.add("https://b.example.com")
    registry.assign_prefix("https://a.example.com", "ops")

    assert registry.url_for_prefix("ops") == "https://a.example.com"
    assert registry.url_for_prefix("missing") is None

    registry.assign_prefix("https://a.example.com", "infra")
    assert registry.url_for_prefix("ops") is None
    assert registry.url_for_prefix("infra") == "https://a.example.com"

    registry.clear_prefix("https://a.example.com")
    assert registry.url_for_prefix("infra") is None
    assert registry.get("https://a.example.com").prefix is None


def test_removal_releases_prefix() -> None:
    registry = EndpointRegistry(MemoryStore())
    registry.add("https://a.example.com")
    registry.assign_prefix("https://a.example.com", "ops")
    registry.remove("https://a.example.com")
    assert registry.url_for_prefix("ops") is None


def test_set_schema_replaces_methods_wholesale() -> None:
    registry = EndpointRegistry(MemoryStore())
    registry.add("https://example.com")
    registry.set_schema("https://example.com", _schema(one="one", two="two"))
    registry.set_schema("https://example.com", _schema(namespace="deploys", three="three"))

    endpoint = registry.get("https://example.com")
    assert endpoint.namespace == "deploys"
    assert list(endpoint.methods) == ["three"]


def test_mutating_unknown_endpoint_raises() -> None:
    registry = EndpointRegistry(MemoryStore())
    with pytest.raises(KeyError):
        registry.record_status("https://missing.example.com", "nope")


def test_state_round_trips_through_store() -> None:
    store = MemoryStore()
    registry = EndpointRegistry(store)
    registry.add("https://example.com")
    registry.assign_prefix("https://example.com", "ops")
    registry.set_schema("https://example.com", _schema(status="status"))
    registry.record_status("https://example.com", "Found 1 method.", at="2026-01-01T00:00:00Z")

    assert set(store.get(ENDPOINTS_KEY)) == {"https://example.com"}
    assert store.get(PREFIXES_KEY) == {"ops": "https://example.com"}

    reloaded = EndpointRegistry(store).get("https://example.com")
    assert reloaded is not None
    assert reloaded.prefix == "ops"
    assert reloaded.namespace == "deploy"
    assert reloaded.methods["status"].regex == "status"
    assert reloaded.last_response == "Found 1 method."
    assert reloaded.updated_at == "2026-01-01T00:00:00Z"


def test_json_file_store_persists(tmp_path: Path) -> None:
    path = tmp_path / "state" / "chatops.json"
    registry = EndpointRegistry(JsonFileStore(path))
    registry.add("https://example.com")
    registry.assign_prefix("https://example.com", "ops")

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk[PREFIXES_KEY] == {"ops": "https://example.com"}
    assert EndpointRegistry(JsonFileStore(path)).url_for_prefix("ops") == "https://example.com"


def test_json_file_store_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "chatops.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileStore(path).get(ENDPOINTS_KEY) is None
