"""Database configuration and adapter factory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from matte.persistence.adapter import StorageAdapter

SQLITE_PREFIX = "sqlite:///"
DEFAULT_DB_NAME = "matte.db"


@dataclass(frozen=True)
class DatabaseConfig:
    """Where records are stored, as a URL. Only ``sqlite:///`` is supported."""

    url: str

    @classmethod
    def memory(cls) -> DatabaseConfig:
        """A private in-memory database, gone when the connection closes."""
        return cls(url=f"{SQLITE_PREFIX}:memory:")

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> DatabaseConfig:
        """Resolve the database from the environment.

        First match wins: DATABASE_URL, then MATTE_DB_PATH (a file path),
        then ``<base_path>/data/matte.db``, then ``matte.db`` in the cwd.
        """
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)
        db_path = os.environ.get("MATTE_DB_PATH")
        if db_path:
            return cls(url=f"{SQLITE_PREFIX}{db_path}")
        if base_path:
            return cls(url=f"{SQLITE_PREFIX}{base_path / 'data' / DEFAULT_DB_NAME}")
        return cls(url=f"{SQLITE_PREFIX}{DEFAULT_DB_NAME}")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def sqlite_path(self) -> str:
        """Filesystem path of a sqlite:/// URL, ``:memory:`` when empty."""
        return self.url.replace(SQLITE_PREFIX, "", 1) or ":memory:"


def create_adapter(config: DatabaseConfig) -> StorageAdapter:
    """Create an unconnected storage adapter for the configured URL.

    Raises:
        ValueError: For unsupported URL schemes.
    """
    if not config.is_sqlite:
        raise ValueError(f"Unsupported database URL scheme: {config.url}")

    from matte.persistence.sqlite import SQLiteAdapter

    return SQLiteAdapter(config.sqlite_path)
