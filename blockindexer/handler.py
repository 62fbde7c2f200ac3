"""Per-block context, event filters and the handler interface."""

from __future__ import annotations

import copy
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .errors import IndexerError
from .events import ChainEvent


class Context:
    """State shared by the handlers that process one block."""

    def __init__(self, block_number: int, block_hash: Any) -> None:
        self.block_number = block_number
        self.block_hash = block_hash
        self._pipeline: dict[str, Any] = {}
        self._lock = threading.Lock()

    def set_pipeline_data(self, key: str, data: Any) -> None:
        """Store data for use by later handlers in a pipeline."""
        with self._lock:
            self._pipeline[key] = data

    def get_pipeline_data(self, key: str, expected_type: type | None = None) -> Any:
        """Remove and return the data under ``key``.

        Returns None if the key is absent or the value is not an instance of
        ``expected_type``; the entry is consumed either way.
        """
        with self._lock:
            value = self._pipeline.pop(key, None)
        if value is None:
            return None
        if expected_type is not None and not isinstance(value, expected_type):
            return None
        return value

    def peek_pipeline_data(self, key: str, expected_type: type | None = None) -> Any:
        """Return a copy of the data under ``key`` without consuming it."""
        with self._lock:
            if key not in self._pipeline:
                return None
            value = self._pipeline[key]
        if expected_type is not None and not isinstance(value, expected_type):
            return None
        return copy.copy(value)


@dataclass(frozen=True)
class EventFilter:
    """Selects events by pallet and, optionally, event variant."""

    pallet: str | None = None
    event: str | None = None

    @classmethod
    def all(cls) -> EventFilter:
        """A filter that matches every event."""
        return cls()

    @classmethod
    def for_pallet(cls, pallet: str) -> EventFilter:
        """A filter that matches every event of ``pallet``."""
        return cls(pallet=pallet)

    @classmethod
    def for_event(cls, pallet: str, event: str) -> EventFilter:
        """A filter that matches one event variant of ``pallet``."""
        return cls(pallet=pallet, event=event)

    def matches(self, pallet: str, event: str) -> bool:
        if self.pallet is not None and self.event is not None:
            return self.pallet == pallet and self.event == event
        if self.pallet is not None:
            return self.pallet == pallet
        return self.event is None


class Handler:
    """Receives the blocks and events of the chain; override what is needed."""

    def event_filter(self) -> EventFilter:
        return EventFilter.all()

    async def handle_event(self, event: ChainEvent, ctx: Context) -> None:
        """Process one event that passed :meth:`event_filter`."""

    async def handle_block(self, ctx: Context, events: Sequence[ChainEvent]) -> None:
        """Process a whole block's events at once."""

    async def handle_error(self, error: IndexerError, ctx: Context) -> None:
        """React to an error raised by this handler."""