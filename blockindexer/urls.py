"""Validated URL types for node and database connections."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import SplitResult, urlsplit, urlunsplit

from .errors import invalid_config

_SCHEME = re.compile(r"([A-Za-z][A-Za-z0-9+.\-]*):(.*)", re.DOTALL)
_HOST_REQUIRED = {"http", "https", "ws", "wss", "ftp"}
_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}
_STRIP = "".join(chr(c) for c in range(0x21))


def _split(text: str, field: str) -> tuple[str, SplitResult, int | None]:
    """Split ``text`` into parts, raising ``invalid URL`` where it cannot be parsed."""
    text = text.strip(_STRIP)
    match = _SCHEME.fullmatch(text)
    if match is None:
        raise invalid_config(field, "invalid URL")
    scheme = match.group(1).lower()
    normalized = f"{scheme}:{match.group(2)}"
    try:
        parts = urlsplit(normalized)
        port = parts.port
    except ValueError:
        raise invalid_config(field, "invalid URL") from None
    if scheme in _HOST_REQUIRED:
        host = parts.hostname
        if not host or any(c.isspace() for c in host):
            raise invalid_config(field, "invalid URL")
    return normalized, parts, port


def _serialize_special(parts: SplitResult, port: int | None) -> str:
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    netloc = host
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme):
        netloc = f"{netloc}:{port}"
    if parts.username is not None:
        user = parts.username
        if parts.password is not None:
            user = f"{user}:{parts.password}"
        netloc = f"{user}@{netloc}"
    return urlunsplit((parts.scheme, netloc, parts.path or "/", parts.query, parts.fragment))


@dataclass(frozen=True)
class WebSocketUrl:
    """A node URL using the ``ws`` or ``wss`` scheme."""

    url: str

    @classmethod
    def parse(cls, text: str) -> WebSocketUrl:
        """Parse and validate a websocket URL."""
        _, parts, port = _split(text, "node_url")
        if parts.scheme not in ("ws", "wss"):
            raise invalid_config("node_url", "must start with ws:// or wss://")
        return cls(_serialize_special(parts, port))

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class PostgresUrl:
    """A database URL using the ``postgres`` or ``postgresql`` scheme."""

    url: str

    @classmethod
    def parse(cls, text: str) -> PostgresUrl:
        """Parse and validate a PostgreSQL URL."""
        normalized, parts, _ = _split(text, "database_url")
        if parts.scheme not in ("postgres", "postgresql"):
            raise invalid_config(
                "database_url", "must start with postgres:// or postgresql://"
            )
        return cls(normalized)

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class SqliteUrl:
    """A database URL of the form ``sqlite://<path>``."""

    raw_path: str

    @classmethod
    def parse(cls, text: str) -> SqliteUrl:
        """Validate the prefix and keep the file path that follows it."""
        prefix = "sqlite://"
        if not text.startswith(prefix):
            raise invalid_config("database_url", "must start with sqlite://")
        path = text
        while path.startswith(prefix):
            path = path[len(prefix):]
        return cls(path)

    @property
    def path(self) -> Path:
        """The database file path."""
        return Path(self.raw_path)

    def __str__(self) -> str:
        return f"sqlite://{self.raw_path}"