"""Exceptions raised by the indexer."""

from __future__ import annotations


class IndexerError(Exception):
    """Base class of every error the indexer raises."""


class ChainError(IndexerError):
    """An error reported by the chain client or its RPC layer."""

    def __init__(
        self,
        message: str,
        *,
        rpc_limit_reached: bool = False,
        client_error: bool = False,
    ) -> None:
        super().__init__(f"Chain error: {message}")
        self.message = message
        self.rpc_limit_reached = rpc_limit_reached
        self.client_error = client_error

    @property
    def retryable(self) -> bool:
        """Whether repeating the failed request may succeed."""
        return not (self.rpc_limit_reached or self.client_error)


class DatabaseError(IndexerError):
    """An error reported by a database backend."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Database error: {message}")
        self.message = message


class ConnectionFailed(IndexerError):
    """Connecting to a node failed."""

    def __init__(self, url: str, source: BaseException) -> None:
        super().__init__(f"Connection to {url} failed: {source}")
        self.url = url
        self.source = source
        self.__cause__ = source


class BlockNotFound(IndexerError):
    """The node has no block with the requested number."""

    def __init__(self, block: int) -> None:
        super().__init__(f"Block {block} not found")
        self.block = block


class HandlerFailed(IndexerError):
    """A handler failed while processing a block."""

    def __init__(self, handler: str, block: int, source: BaseException) -> None:
        super().__init__(f"Handler {handler} failed at block {block}: {source}")
        self.handler = handler
        self.block = block
        self.source = source
        self.__cause__ = source


class InvalidConfig(IndexerError):
    """A configuration value was rejected."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"Invalid config for `{field}`: {message}")
        self.field = field
        self.message = message


class CheckpointError(IndexerError):
    """Loading or storing a checkpoint failed."""

    def __init__(self, operation: str, backend: str, source: BaseException) -> None:
        super().__init__(f"Checkpoint {operation} failed using {backend}: {source}")
        self.operation = operation
        self.backend = backend
        self.source = source
        self.__cause__ = source


class MetadataUpdateFailed(IndexerError):
    """Fetching or applying runtime metadata failed."""

    def __init__(self, source: BaseException) -> None:
        super().__init__(f"Metadata update failed: {source}")
        self.source = source
        self.__cause__ = source


class EventDecodingFailed(IndexerError):
    """An event in a block could not be decoded."""

    def __init__(self, pallet: str, event: str, block: int, source: BaseException) -> None:
        super().__init__(
            f"Failed to decode event {pallet}.{event} in block {block}: {source}"
        )
        self.pallet = pallet
        self.event = event
        self.block = block
        self.source = source
        self.__cause__ = source


def invalid_config(field: str, message: str) -> InvalidConfig:
    """Build an :class:`InvalidConfig` error for ``field``."""
    return InvalidConfig(str(field), str(message))