"""Data models for endpoints and the schema documents they publish."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MethodSpec(BaseModel):
    """One remote-callable method as described by an endpoint schema."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    regex: str
    help: str | None = None
    path: str | None = None
    error_response: str | None = None


class EndpointSchema(BaseModel):
    """Schema document served by a chatops endpoint."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    namespace: str
    help: str | None = None
    version: int | None = None
    methods: dict[str, MethodSpec] = Field(default_factory=dict)


@dataclass(slots=True)
class Endpoint:
    url: str
    prefix: str | None = None
    namespace: str | None = None
    methods: dict[str, MethodSpec] = field(default_factory=dict)
    help: str | None = None
    last_response: str | None = None
    updated_at: str | None = None

    def to_json(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "prefix": self.prefix,
            "namespace": self.namespace,
            "help": self.help,
            "methods": {name: method.model_dump() for name, method in self.methods.items()},
            "last_response": self.last_response,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_json(cls, body: dict[str, Any]) -> Endpoint:
        raw_methods = body.get("methods")
        methods: dict[str, MethodSpec] = {}
        if isinstance(raw_methods, dict):
            for name, raw in raw_methods.items():
                if isinstance(name, str) and isinstance(raw, dict):
                    methods[name] = MethodSpec.model_validate(raw)

        return cls(
            url=str(body.get("url") or ""),
            prefix=body.get("prefix") if isinstance(body.get("prefix"), str) else None,
            namespace=body.get("namespace") if isinstance(body.get("namespace"), str) else None,
            methods=methods,
            help=body.get("help") if isinstance(body.get("help"), str) else None,
            last_response=body.get("last_response") if isinstance(body.get("last_response"), str) else None,
            updated_at=body.get("updated_at") if isinstance(body.get("updated_at"), str) else None,
        )
