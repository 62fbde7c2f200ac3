"""Indexer configuration and its builder."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import invalid_config


@dataclass
class IndexerConfig:
    """Settings the indexer runs with."""

    node_url: str
    database_url: str | None = None
    start_block: int | None = None
    end_block: int | None = None

    @staticmethod
    def builder() -> IndexerConfigBuilder:
        """Return a new, empty builder."""
        return IndexerConfigBuilder()

    def validate(self) -> None:
        """Raise :class:`InvalidConfig` if any setting is unusable."""
        if not self.node_url.strip():
            raise invalid_config("node_url", "cannot be empty")
        if not self.node_url.startswith(("ws://", "wss://")):
            raise invalid_config("node_url", "must start with ws:// or wss://")
        if self.database_url is not None and not self.database_url.strip():
            raise invalid_config("database_url", "cannot be empty")
        if (
            self.start_block is not None
            and self.end_block is not None
            and self.end_block < self.start_block
        ):
            raise invalid_config(
                "end_block", "must be greater than or equal to start_block"
            )


class IndexerConfigBuilder:
    """Fluent builder producing a validated :class:`IndexerConfig`."""

    def __init__(self) -> None:
        self._node_url = ""
        self._database_url: str | None = None
        self._start_block: int | None = None
        self._end_block: int | None = None

    def node_url(self, url: str) -> IndexerConfigBuilder:
        self._node_url = str(url)
        return self

    def with_postgres(self, url: str) -> IndexerConfigBuilder:
        self._database_url = str(url)
        return self

    def with_sqlite(self, url: str) -> IndexerConfigBuilder:
        self._database_url = str(url)
        return self

    def start_from_block(self, block: int) -> IndexerConfigBuilder:
        self._start_block = block
        return self

    def end_at_block(self, block: int) -> IndexerConfigBuilder:
        self._end_block = block
        return self

    def build(self) -> IndexerConfig:
        """Create the configuration and validate it."""
        config = IndexerConfig(
            node_url=self._node_url,
            database_url=self._database_url,
            start_block=self._start_block,
            end_block=self._end_block,
        )
        config.validate()
        return config