"""Authoritative record of known endpoints, their prefixes and status."""

from __future__ import annotations

from datetime import datetime, timezone

from .models import Endpoint, EndpointSchema
from .protocols import KeyValueStore

ENDPOINTS_KEY = "chatops_rpc.endpoints"
PREFIXES_KEY = "chatops_rpc.prefixes"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


class EndpointRegistry:
    """Endpoint state persisted through a key-value store.

    The registry stores what it is told. Callers check ``url_for_prefix``
    before assigning a prefix so that each prefix has one owner.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._endpoints: dict[str, Endpoint] | None = None
        self._prefixes: dict[str, str] = {}

    def __contains__(self, url: object) -> bool:
        return url in self._loaded()

    def __len__(self) -> int:
        return len(self._loaded())

    def all(self) -> list[Endpoint]:
        return list(self._loaded().values())

    def get(self, url: str) -> Endpoint | None:
        return self._loaded().get(url)

    def add(self, url: str) -> Endpoint:
        endpoints = self._loaded()
        endpoint = endpoints.get(url)
        if endpoint is None:
            endpoint = Endpoint(url=url)
            endpoints[url] = endpoint
            self._persist()
        return endpoint

    def remove(self, url: str) -> bool:
        endpoint = self._loaded().pop(url, None)
        if endpoint is None:
            return False
        if endpoint.prefix is not None and self._prefixes.get(endpoint.prefix) == url:
            del self._prefixes[endpoint.prefix]
        self._persist()
        return True

    def assign_prefix(self, url: str, prefix: str) -> None:
        endpoint = self._require(url)
        if endpoint.prefix is not None and self._prefixes.get(endpoint.prefix) == url:
            del self._prefixes[endpoint.prefix]
        endpoint.prefix = prefix
        self._prefixes[prefix] = url
        self._persist()

    def clear_prefix(self, url: str) -> None:
        endpoint = self._require(url)
        if endpoint.prefix is not None and self._prefixes.get(endpoint.prefix) == url:
            del self._prefixes[endpoint.prefix]
        endpoint.prefix = None
        self._persist()

    def url_for_prefix(self, prefix: str) -> str | None:
        self._loaded()
        return self._prefixes.get(prefix)

    def set_schema(self, url: str, schema: EndpointSchema) -> None:
        endpoint = self._require(url)
        endpoint.namespace = schema.namespace
        endpoint.help = schema.help
        endpoint.methods = dict(schema.methods)
        self._persist()

    def record_status(self, url: str, message: str, *, at: str | None = None) -> None:
        endpoint = self._require(url)
        endpoint.last_response = message
        endpoint.updated_at = at or utc_now()
        self._persist()

    def _require(self, url: str) -> Endpoint:
        endpoint = self._loaded().get(url)
        if endpoint is None:
            raise KeyError(url)
        return endpoint

    def _loaded(self) -> dict[str, Endpoint]:
        if self._endpoints is not None:
            return self._endpoints

        endpoints: dict[str, Endpoint] = {}
        raw_endpoints = self._store.get(ENDPOINTS_KEY)
        if isinstance(raw_endpoints, dict):
            for url, raw in raw_endpoints.items():
                if isinstance(url, str) and isinstance(raw, dict):
                    endpoints[url] = Endpoint.from_json({**raw, "url": url})

        prefixes: dict[str, str] = {}
        raw_prefixes = self._store.get(PREFIXES_KEY)
        if isinstance(raw_prefixes, dict):
            for prefix, url in raw_prefixes.items():
                if isinstance(prefix, str) and isinstance(url, str) and url in endpoints:
                    prefixes[prefix] = url

        self._endpoints = endpoints
        self._prefixes = prefixes
        return endpoints

    def _persist(self) -> None:
        endpoints = self._loaded()
        self._store.set(ENDPOINTS_KEY, {url: endpoint.to_json() for url, endpoint in endpoints.items()})
        self._store.set(PREFIXES_KEY, dict(self._prefixes))
