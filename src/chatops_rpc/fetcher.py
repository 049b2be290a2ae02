"""Signed schema fetches that keep the registry in step with each endpoint."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from .errors import HttpStatusError, SchemaError, TransportError, summarize_error_text
from .models import EndpointSchema
from .registry import EndpointRegistry
from .signing import Signer
from .transport import RpcTransport

logger = logging.getLogger(__name__)

SchemaAppliedCallback = Callable[[str], Awaitable[None] | None]


def found_methods_message(count: int) -> str:
    noun = "method" if count == 1 else "methods"
    return f"Found {count} {noun}."


def incompatible_version_message(url: str, version: int) -> str:
    return (
        f"Endpoint uses chatops RPC version {version}, which requires a prefix. "
        f"Remove it and add it again with `rpc add {url} --prefix <prefix>`."
    )


def parse_schema(text: str) -> EndpointSchema:
    try:
        return EndpointSchema.model_validate_json(text)
    except ValidationError as error:
        raise SchemaError(f"Invalid schema: {error.error_count()} validation error(s): {text}") from error


class SchemaFetcher:
    def __init__(
        self,
        registry: EndpointRegistry,
        transport: RpcTransport,
        signer: Signer,
        *,
        on_applied: SchemaAppliedCallback | None = None,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._signer = signer
        self._on_applied = on_applied

    async def fetch(self, url: str) -> bool:
        """Fetch and apply ``url``'s schema; returns whether it was applied.

        Every outcome is recorded as the endpoint's status. An endpoint that
        was removed while the request was in flight is left untouched.
        """
        signed = self._signer.sign(url)
        try:
            response = await self._transport.get(url, headers=signed.headers())
            if response.status_code != 200:
                raise HttpStatusError(response.status_code, response.text)
        except TransportError as error:
            return self._fail(url, str(error))

        if url not in self._registry:
            logger.debug("dropping schema for removed endpoint %s", url)
            return False

        try:
            schema = parse_schema(response.text)
            endpoint = self._registry.get(url)
            if schema.version is not None and endpoint is not None and endpoint.prefix is None:
                raise SchemaError(incompatible_version_message(url, schema.version))
        except SchemaError as error:
            return self._fail(url, str(error))

        self._registry.set_schema(url, schema)
        if self._on_applied is not None:
            result = self._on_applied(url)
            if inspect.isawaitable(result):
                await result

        if url not in self._registry:
            return False
        self._registry.record_status(url, found_methods_message(len(schema.methods)))
        logger.debug("applied %d methods from %s", len(schema.methods), url)
        return True

    def _fail(self, url: str, message: str) -> bool:
        if url not in self._registry:
            logger.debug("ignoring failure for removed endpoint %s: %s", url, message)
            return False
        summary = summarize_error_text(message)
        logger.warning("schema fetch for %s failed: %s", url, summary)
        self._registry.record_status(url, summary)
        return False
