"""Checkpoint stores remembering the last processed block."""

from __future__ import annotations

import abc
import asyncio
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from .errors import CheckpointError, invalid_config
from .urls import SqliteUrl

_CHECKPOINT_ID = "bittensor"
_I64_RANGE = 1 << 64
_I64_MAX = (1 << 63) - 1


class CheckpointStore(abc.ABC):
    """Persists the number of the last block that was fully processed."""

    @abc.abstractmethod
    async def load_checkpoint(self) -> int | None:
        """Return the stored block number, or None if nothing is stored."""

    @abc.abstractmethod
    async def store_checkpoint(self, block: int) -> None:
        """Record ``block`` as the latest processed block."""


class JsonStore(CheckpointStore):
    """Keeps the checkpoint in a small JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass

    async def load_checkpoint(self) -> int | None:
        if not self.path.exists():
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CheckpointError("load_checkpoint", "json", exc) from exc
        try:
            block = json.loads(text)["last_block"]
        except (ValueError, KeyError, TypeError) as exc:
            raise CheckpointError("load_checkpoint", "json", exc) from exc
        if isinstance(block, bool) or not isinstance(block, int) or block < 0:
            error = ValueError(f"invalid last_block value: {block!r}")
            raise CheckpointError("load_checkpoint", "json", error)
        return block

    async def store_checkpoint(self, block: int) -> None:
        text = json.dumps({"last_block": block}, indent=2)
        try:
            self.path.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise CheckpointError("store_checkpoint", "json", exc) from exc


class SqliteStore(CheckpointStore):
    """Keeps the checkpoint in a SQLite table."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._lock = threading.Lock()

    @classmethod
    async def open(cls, path: str | Path) -> SqliteStore:
        """Open (creating if needed) the database at ``path`` and its table."""
        path = str(path)
        if path != ":memory:":
            await asyncio.to_thread(Path(path).parent.mkdir, parents=True, exist_ok=True)
        try:
            conn = await asyncio.to_thread(sqlite3.connect, path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise CheckpointError("connect", "sqlite", exc) from exc
        store = cls(conn)
        await store._execute(
            "init",
            "CREATE TABLE IF NOT EXISTS indexer_checkpoint ("
            " id TEXT PRIMARY KEY,"
            " last_block BIGINT NOT NULL)",
            (),
        )
        return store

    def _execute_sync(self, sql: str, params: tuple[Any, ...]) -> list[tuple[Any, ...]]:
        with self._lock:
            with self._conn:
                return self._conn.execute(sql, params).fetchall()

    async def _execute(
        self, operation: str, sql: str, params: tuple[Any, ...]
    ) -> list[tuple[Any, ...]]:
        try:
            return await asyncio.to_thread(self._execute_sync, sql, params)
        except sqlite3.Error as exc:
            raise CheckpointError(operation, "sqlite", exc) from exc

    async def load_checkpoint(self) -> int | None:
        rows = await self._execute(
            "load_checkpoint",
            "SELECT last_block FROM indexer_checkpoint WHERE id = ?",
            (_CHECKPOINT_ID,),
        )
        if not rows:
            return None
        value = rows[0][0]
        return value + _I64_RANGE if value < 0 else value

    async def store_checkpoint(self, block: int) -> None:
        stored = block - _I64_RANGE if block > _I64_MAX else block
        await self._execute(
            "store_checkpoint",
            "INSERT INTO indexer_checkpoint (id, last_block) VALUES (?, ?) "
            "ON CONFLICT(id) DO UPDATE SET last_block = excluded.last_block",
            (_CHECKPOINT_ID, stored),
        )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()


async def init_store(database_url: str | None) -> CheckpointStore:
    """Pick a store for ``database_url``; without one, use ``database/checkpoint.json``."""
    if database_url is not None:
        if database_url.startswith(("postgres://", "postgresql://")):
            raise invalid_config("database_url", "postgres feature disabled")
        if database_url.startswith("sqlite://"):
            return await SqliteStore.open(SqliteUrl.parse(database_url).raw_path)
        raise invalid_config("database_url", "Unsupported database URL")
    base_dir = Path("database")
    base_dir.mkdir(parents=True, exist_ok=True)
    return JsonStore(base_dir / "checkpoint.json")