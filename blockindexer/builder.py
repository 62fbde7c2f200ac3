"""Fluent construction of an :class:`Indexer`."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Union

from .config import IndexerConfig
from .errors import invalid_config
from .handler import Handler
from .handler_group import HandlerGroup
from .indexer import ChainClient, Indexer
from .storage import init_store
from .urls import WebSocketUrl

ClientFactory = Callable[[str], Union[ChainClient, Awaitable[ChainClient]]]


class IndexerBuilder:
    """Collects settings and handlers, then builds a ready :class:`Indexer`.

    ``client_factory`` receives the node URL and returns a :class:`ChainClient`
    (or an awaitable of one).
    """

    def __init__(self, client_factory: ClientFactory) -> None:
        self._client_factory = client_factory
        self._node_url: WebSocketUrl | None = None
        self._database_url: str | None = None
        self._start_block: int | None = None
        self._end_block: int | None = None
        self._max_blocks_per_minute: int | None = None
        self._handlers: list[Handler] = []

    def connect(self, url: WebSocketUrl | str) -> IndexerBuilder:
        """Connect to the given websocket URL."""
        self._node_url = url if isinstance(url, WebSocketUrl) else WebSocketUrl.parse(url)
        return self

    def with_postgres(self, url: str) -> IndexerBuilder:
        self._database_url = str(url)
        return self

    def with_sqlite(self, url: str) -> IndexerBuilder:
        self._database_url = str(url)
        return self

    def start_from_block(self, block: int) -> IndexerBuilder:
        self._start_block = block
        return self

    def end_at_block(self, block: int) -> IndexerBuilder:
        self._end_block = block
        return self

    def max_blocks_per_minute(self, value: int) -> IndexerBuilder:
        """Throttle processing to at most ``value`` blocks per minute."""
        if value < 1:
            raise ValueError("max_blocks_per_minute must be at least 1")
        self._max_blocks_per_minute = value
        return self

    def add_handler(self, handler: Handler) -> IndexerBuilder:
        self._handlers.append(handler)
        return self

    def add_handler_group(self, group: HandlerGroup) -> IndexerBuilder:
        self._handlers.append(group)
        return self

    async def build(self) -> Indexer:
        """Create the client and store, validate the settings and build the indexer."""
        if self._node_url is None:
            raise invalid_config("node_url", "missing")
        url = str(self._node_url)

        client = self._client_factory(url)
        if inspect.isawaitable(client):
            client = await client
        store = await init_store(self._database_url)

        cfg = IndexerConfig.builder().node_url(url)
        if self._database_url is not None:
            cfg = cfg.with_postgres(self._database_url)
        if self._start_block is not None:
            cfg = cfg.start_from_block(self._start_block)
        if self._end_block is not None:
            cfg = cfg.end_at_block(self._end_block)
        config = cfg.build()

        indexer = Indexer(client, store, config)
        indexer.max_blocks_per_minute = self._max_blocks_per_minute
        for handler in self._handlers:
            indexer.add_handler(handler)
        return indexer