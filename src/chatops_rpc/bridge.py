"""Top-level bridge wiring the registry, poller and dispatcher together."""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from .admin import OperatorCommands
from .config import BridgeConfig
from .dispatcher import CommandDispatcher
from .fetcher import SchemaFetcher
from .hooks import AfterHook, BeforeHook, ErrorHook, HookRegistry
from .protocols import ChatSurface, KeyValueStore, MessageSender, RequestHookMiddleware
from .registry import EndpointRegistry
from .scheduler import PollScheduler, SleepFn
from .signing import Signer
from .store import JsonFileStore, MemoryStore
from .transport import RpcTransport

logger = logging.getLogger(__name__)


class ChatopsRpc:
    """Discovers remote chatops schemas and serves them as chat commands.

    Construction fails with ``ConfigError`` when no signing key is
    configured; nothing is registered or polled in that case.
    """

    def __init__(
        self,
        *,
        surface: ChatSurface,
        sender: MessageSender,
        config: BridgeConfig | None = None,
        store: KeyValueStore | None = None,
        signer: Signer | None = None,
        http_client: httpx.AsyncClient | None = None,
        hook_registry: HookRegistry | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self.config = config or BridgeConfig()
        self.signer = signer or Signer.from_pem(self.config.private_key)
        self.surface = surface

        if store is None:
            store = JsonFileStore(self.config.store_path) if self.config.store_path else MemoryStore()
        self.registry = EndpointRegistry(store)

        self._hooks = hook_registry or HookRegistry()
        self._client = http_client or httpx.AsyncClient(timeout=self.config.request_timeout_seconds)
        self.transport = RpcTransport(self._client, hooks=self._hooks)

        self.dispatcher = CommandDispatcher(
            self.registry,
            surface,
            sender,
            self.transport,
            self.signer,
            robot_name=self.config.robot_name,
            robot_alias=self.config.robot_alias,
            request_timeout_seconds=self.config.request_timeout_seconds,
            snippet_threshold=self.config.snippet_threshold,
        )
        self.fetcher = SchemaFetcher(
            self.registry,
            self.transport,
            self.signer,
            on_applied=self.dispatcher.on_schema_applied,
        )
        self.scheduler = PollScheduler(
            self.fetcher,
            self.registry,
            interval_seconds=self.config.poll_interval_seconds,
            max_interval_seconds=self.config.max_poll_interval_seconds,
            sleep=sleep,
        )
        self.operator = OperatorCommands(
            registry=self.registry,
            dispatcher=self.dispatcher,
            scheduler=self.scheduler,
            sender=sender,
            allow_insecure_urls=self.config.allow_insecure_urls,
            snippet_threshold=self.config.snippet_threshold,
        )
        self._started = False

    @classmethod
    def from_env(cls, *, surface: ChatSurface, sender: MessageSender) -> "ChatopsRpc":
        return cls(surface=surface, sender=sender, config=BridgeConfig.from_env())

    def before(self, operation: str = "*") -> Callable[[BeforeHook], BeforeHook]:
        def decorator(func: BeforeHook) -> BeforeHook:
            self._hooks.add_before(operation, func)
            return func

        return decorator

    def after(self, operation: str = "*") -> Callable[[AfterHook], AfterHook]:
        def decorator(func: AfterHook) -> AfterHook:
            self._hooks.add_after(operation, func)
            return func

        return decorator

    def on_error(self, operation: str = "*") -> Callable[[ErrorHook], ErrorHook]:
        def decorator(func: ErrorHook) -> ErrorHook:
            self._hooks.add_error(operation, func)
            return func

        return decorator

    def use_middleware(self, middleware: RequestHookMiddleware, *, operation: str = "*") -> None:
        self._hooks.add_middleware(operation, middleware)

    def help_lines(self) -> list[str]:
        return [*self.operator.help_lines(), *self.dispatcher.help_lines()]

    async def start(self) -> None:
        """Register operator commands, restore stored commands, start polling."""
        if self._started:
            return
        self.operator.register(self.surface)
        endpoints = self.registry.all()
        for endpoint in endpoints:
            if endpoint.namespace is not None:
                self.dispatcher.on_schema_applied(endpoint.url)
            self.scheduler.start(endpoint.url)
        self._started = True
        logger.info("chatops rpc started with %d endpoints", len(endpoints))

    async def close(self) -> None:
        await self.scheduler.close()
        await self.transport.aclose()
        self._started = False

    async def __aenter__(self) -> "ChatopsRpc":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

