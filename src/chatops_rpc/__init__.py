"""Chatops RPC bridge.

This module uses lazy exports so lightweight utilities (for example the
argument grammar) can be imported without importing httpx or cryptography.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "BridgeConfig",
    "ChatMessage",
    "ChatRouter",
    "ChatSurface",
    "ChatopsRpc",
    "ChatopsRpcError",
    "ClientTimeoutError",
    "CommandDispatcher",
    "CompiledCommand",
    "ConfigError",
    "Endpoint",
    "EndpointRegistry",
    "EndpointSchema",
    "HookRegistry",
    "HttpStatusError",
    "InvocationError",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "MessageSender",
    "MethodSpec",
    "PollScheduler",
    "PrefixConflictError",
    "SchemaError",
    "SchemaFetcher",
    "Signer",
    "TransportError",
    "extract_generic_arguments",
]

_EXPORTS: dict[str, tuple[str, str]] = {
    "ChatopsRpc": (".bridge", "ChatopsRpc"),
    "BridgeConfig": (".config", "BridgeConfig"),
    "CommandDispatcher": (".dispatcher", "CommandDispatcher"),
    "CompiledCommand": (".dispatcher", "CompiledCommand"),
    "ChatopsRpcError": (".errors", "ChatopsRpcError"),
    "ClientTimeoutError": (".errors", "ClientTimeoutError"),
    "ConfigError": (".errors", "ConfigError"),
    "HttpStatusError": (".errors", "HttpStatusError"),
    "InvocationError": (".errors", "InvocationError"),
    "PrefixConflictError": (".errors", "PrefixConflictError"),
    "SchemaError": (".errors", "SchemaError"),
    "TransportError": (".errors", "TransportError"),
    "SchemaFetcher": (".fetcher", "SchemaFetcher"),
    "HookRegistry": (".hooks", "HookRegistry"),
    "Endpoint": (".models", "Endpoint"),
    "EndpointSchema": (".models", "EndpointSchema"),
    "MethodSpec": (".models", "MethodSpec"),
    "ChatMessage": (".protocols", "ChatMessage"),
    "ChatSurface": (".protocols", "ChatSurface"),
    "KeyValueStore": (".protocols", "KeyValueStore"),
    "MessageSender": (".protocols", "MessageSender"),
    "EndpointRegistry": (".registry", "EndpointRegistry"),
    "ChatRouter": (".router", "ChatRouter"),
    "PollScheduler": (".scheduler", "PollScheduler"),
    "Signer": (".signing", "Signer"),
    "JsonFileStore": (".store", "JsonFileStore"),
    "MemoryStore": (".store", "MemoryStore"),
    "extract_generic_arguments": (".arguments", "extract_generic_arguments"),
}

if TYPE_CHECKING:
    from .arguments import extract_generic_arguments
    from .bridge import ChatopsRpc
    from .config import BridgeConfig
    from .dispatcher import CommandDispatcher, CompiledCommand
    from .errors import (
        ChatopsRpcError,
        ClientTimeoutError,
        ConfigError,
        HttpStatusError,
        InvocationError,
        PrefixConflictError,
        SchemaError,
        TransportError,
    )
    from .fetcher import SchemaFetcher
    from .hooks import HookRegistry
    from .models import Endpoint, EndpointSchema, MethodSpec
    from .protocols import ChatMessage, ChatSurface, KeyValueStore, MessageSender
    from .registry import EndpointRegistry
    from .router import ChatRouter
    from .scheduler import PollScheduler
    from .signing import Signer
    from .store import JsonFileStore, MemoryStore


def __getattr__(name: str) -> Any:
    module_info = _EXPORTS.get(name)
    if module_info is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attribute = module_info
    module = import_module(module_name, __name__)
    value = getattr(module, attribute)
    globals()[name] = value
    return value
