"""The indexing loop: walk finalized blocks and hand their events to handlers."""

from __future__ import annotations

import abc
import asyncio
import dataclasses
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from .config import IndexerConfig
from .errors import (
    BlockNotFound,
    ChainError,
    ConnectionFailed,
    EventDecodingFailed,
    IndexerError,
    MetadataUpdateFailed,
)
from .events import ChainEvent
from .handler import Context, Handler
from .handler_group import HandlerGroup
from .retry import CircuitBreaker, RetryConfig, is_retryable_error, retry_with_backoff
from .storage import CheckpointStore

T = TypeVar("T")

log = logging.getLogger("indexer")


@dataclass(frozen=True)
class RuntimeVersion:
    """The runtime version a block was produced with."""

    spec_version: int
    transaction_version: int


@dataclass(frozen=True)
class FinalizedBlock:
    """A finalized block announced by a subscription."""

    number: int
    hash: Any


class ChainClient(abc.ABC):
    """Access to a node. Failures are raised as :class:`ChainError`."""

    @abc.abstractmethod
    def runtime_version(self) -> RuntimeVersion:
        """The runtime version whose metadata the client currently uses."""

    @abc.abstractmethod
    async def runtime_version_at(self, block_hash: Any) -> RuntimeVersion:
        """The runtime version in force at ``block_hash``."""

    @abc.abstractmethod
    async def update_metadata(self, block_hash: Any, version: RuntimeVersion) -> None:
        """Fetch the metadata at ``block_hash`` and switch to it and ``version``."""

    @abc.abstractmethod
    async def finalized_head(self) -> Any:
        """The hash of the latest finalized block."""

    @abc.abstractmethod
    async def header_number(self, block_hash: Any) -> int | None:
        """The number of the block with ``block_hash``, or None if unknown."""

    @abc.abstractmethod
    async def block_hash(self, number: int) -> Any | None:
        """The hash of block ``number``, or None if there is no such block."""

    @abc.abstractmethod
    async def events_at(self, block_hash: Any) -> Iterable[ChainEvent]:
        """The events of a block; iterating may raise :class:`ChainError`."""

    @abc.abstractmethod
    def subscribe_finalized(self) -> AsyncIterator[FinalizedBlock]:
        """Yield blocks as they become finalized."""


class Indexer:
    """Processes blocks in order, calling handlers and storing checkpoints."""

    def __init__(
        self,
        client: ChainClient,
        store: CheckpointStore,
        config: IndexerConfig,
        *,
        retry_config: RetryConfig | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.config = config
        self.retry_config = RetryConfig() if retry_config is None else retry_config
        self.circuit_breaker = (
            CircuitBreaker(3, 60.0) if circuit_breaker is None else circuit_breaker
        )
        self.max_blocks_per_minute: int | None = None
        self._handlers: list[Handler] = []

    @property
    def handlers(self) -> tuple[Handler, ...]:
        """The registered handlers, in the order they run."""
        return tuple(self._handlers)

    def add_handler(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def add_handler_group(self, group: HandlerGroup) -> None:
        self._handlers.append(group)

    async def _guarded(self, op: Callable[[], Awaitable[T]]) -> T:
        if self.circuit_breaker.is_open():
            raise ConnectionFailed(self.config.node_url, ChainError("circuit open"))
        try:
            result = await retry_with_backoff(op, self.retry_config, self.circuit_breaker)
        except IndexerError as err:
            if is_retryable_error(err):
                self.circuit_breaker.record_failure()
            raise
        self.circuit_breaker.record_success()
        return result

    async def _update_metadata(self, block_hash: Any) -> None:
        async def fetch_version() -> RuntimeVersion:
            try:
                return await self.client.runtime_version_at(block_hash)
            except ChainError as exc:
                raise MetadataUpdateFailed(exc) from exc

        version = await self._guarded(fetch_version)
        if version.spec_version == self.client.runtime_version().spec_version:
            return

        async def apply() -> None:
            try:
                await self.client.update_metadata(block_hash, version)
            except ChainError as exc:
                raise MetadataUpdateFailed(exc) from exc

        await self._guarded(apply)

    async def run(self) -> None:
        """Index from the start block (or checkpoint) up to the end block, if any."""
        current = self.config.start_block
        if current is None:
            loaded = await self._guarded(self.store.load_checkpoint)
            current = 0 if loaded is None else loaded
        end = self.config.end_block

        finalized_hash = await self._guarded(self.client.finalized_head)
        latest = await self._guarded(lambda: self.client.header_number(finalized_hash))
        if latest is None:
            raise BlockNotFound(0)

        while current <= latest:
            if end is not None and current > end:
                return
            number = current
            block_hash = await self._guarded(lambda: self.client.block_hash(number))
            if block_hash is None:
                raise BlockNotFound(number)
            await self._process_block(number, block_hash)
            current += 1

        async for block in self.client.subscribe_finalized():
            if block.number < current:
                continue
            await self._process_block(block.number, block.hash)
            current = block.number + 1
            if end is not None and block.number >= end:
                break

    async def _process_block(self, number: int, block_hash: Any) -> None:
        started = time.monotonic()
        await self._update_metadata(block_hash)
        events = await self.client.events_at(block_hash)
        await self._process_events(number, block_hash, events)
        await self._guarded(lambda: self.store.store_checkpoint(number))
        log.debug("Finished processing block %d, all events consumed.", number)

        if self.max_blocks_per_minute is not None:
            min_duration = 60.0 / self.max_blocks_per_minute
            elapsed = time.monotonic() - started
            if elapsed < min_duration:
                wait = min_duration - elapsed
                log.debug("Throttling: sleeping %.3fs to respect rate limits", wait)
                await asyncio.sleep(wait)

    async def _process_events(
        self, number: int, block_hash: Any, events: Iterable[ChainEvent]
    ) -> None:
        ctx = Context(number, block_hash)
        try:
            decoded = [
                dataclasses.replace(event, index=index)
                for index, event in enumerate(events)
            ]
        except ChainError as exc:
            raise EventDecodingFailed("<unknown>", "<unknown>", number, exc) from exc

        for handler in self._handlers:
            try:
                await handler.handle_block(ctx, decoded)
            except IndexerError as err:
                await handler.handle_error(err, ctx)

        for event in decoded:
            for handler in self._handlers:
                if not handler.event_filter().matches(event.pallet_name, event.variant_name):
                    continue
                try:
                    await handler.handle_event(event, ctx)
                except IndexerError as err:
                    await handler.handle_error(err, ctx)