"""HTTPS transport for schema fetches and method invocations."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import ClientTimeoutError, TransportError
from .hooks import METHOD_INVOKE, SCHEMA_FETCH, HookRegistry, RpcCall


@dataclass(slots=True)
class RpcResponse:
    status_code: int
    text: str

    def json(self) -> Any:
        """Decode the body; raises ``ValueError`` when it is not JSON."""
        return json.loads(self.text)


class RpcTransport:
    def __init__(self, client: httpx.AsyncClient, *, hooks: HookRegistry | None = None) -> None:
        self._client = client
        self._hooks = hooks or HookRegistry()

    async def get(self, url: str, *, headers: dict[str, str]) -> RpcResponse:
        call = RpcCall(
            operation=SCHEMA_FETCH,
            method="GET",
            url=url,
            headers={**headers, "Accept": "application/json"},
        )
        return await self._send(call, timeout=None)

    async def post(self, url: str, body: str, *, headers: dict[str, str], timeout: float) -> RpcResponse:
        call = RpcCall(
            operation=METHOD_INVOKE,
            method="POST",
            url=url,
            body=body,
            headers={**headers, "Content-type": "application/json"},
        )
        return await self._send(call, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, call: RpcCall, *, timeout: float | None) -> RpcResponse:
        await self._hooks.run_before(call)
        request_kwargs: dict[str, Any] = {"headers": call.headers}
        if call.body is not None:
            # The exact signed bytes go on the wire.
            request_kwargs["content"] = call.body.encode("utf-8")
        if timeout is not None:
            request_kwargs["timeout"] = timeout

        try:
            response = await self._client.request(call.method, call.url, **request_kwargs)
        except httpx.TimeoutException as error:
            wrapped: TransportError = ClientTimeoutError(str(error) or "request timed out")
            await self._hooks.run_error(call, wrapped)
            raise wrapped from error
        except httpx.HTTPError as error:
            wrapped = TransportError(str(error) or type(error).__name__)
            await self._hooks.run_error(call, wrapped)
            raise wrapped from error

        result = RpcResponse(status_code=response.status_code, text=response.text)
        await self._hooks.run_after(call, result)
        return result
