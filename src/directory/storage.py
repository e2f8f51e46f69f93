"""Durable record stores for directory collections.

Each collection is a whole ordered list of JSON records. There is no query
capability: callers read everything, filter in memory and write everything back.

Two backends share the ``RecordStore`` contract:

- ``JsonFileRecordStore`` keeps the collection as a JSON array file and replaces it
  atomically (temp file in the same directory + ``os.replace``), so a reader never
  sees a half-written array.
- ``SqliteRecordStore`` keeps one row per collection in a small SQLite table.

``Collection`` adds a per-collection ``asyncio.Lock`` on top of a store. Every
read-modify-write goes through ``Collection.transaction()`` so concurrent callers in
one process cannot overwrite each other's changes. Separate processes writing the
same JSON file are still not coordinated.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from directory.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

Record = dict[str, Any]

PRAGMA_BUSY_TIMEOUT_MS = 5000
WRITE_RETRY_ATTEMPTS = 3
WRITE_RETRY_BASE_DELAY_SEC = 0.05


class RecordStore(Protocol):
    """Whole-collection persistence contract."""

    name: str

    async def read(self) -> list[Record]:
        """Return the stored collection, ``[]`` when it was never written."""

    async def write(self, records: Sequence[Record]) -> None:
        """Persist the entire collection, replacing the previous one."""


def _ensure_record_list(name: str, data: Any) -> list[Record]:
    if not isinstance(data, list):
        raise StorageUnavailableError(name, "stored payload is not a JSON array")
    return data


class JsonFileRecordStore:
    """Collection stored as one JSON array file."""

    def __init__(self, path: Path | str, name: str | None = None) -> None:
        self.path = Path(path)
        self.name = name or self.path.stem

    def _read_sync(self) -> list[Record]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as error:
            raise StorageUnavailableError(self.name, str(error)) from error
        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as error:
            raise StorageUnavailableError(self.name, f"corrupt JSON: {error}") from error
        return _ensure_record_list(self.name, data)

    def _write_sync(self, records: Sequence[Record]) -> None:
        payload = json.dumps(list(records), indent=2, ensure_ascii=False)
        tmp_path: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=self.path.parent,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as error:
            raise StorageUnavailableError(self.name, str(error)) from error
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    async def read(self) -> list[Record]:
        return await asyncio.to_thread(self._read_sync)

    async def write(self, records: Sequence[Record]) -> None:
        await asyncio.to_thread(self._write_sync, records)


def utc_now_iso() -> str:
    """Current UTC timestamp in ISO-8601."""
    return datetime.now(timezone.utc).isoformat()


class SqliteRecordStore:
    """Collection stored as one JSON payload row in an SQLite table.

    Several processes may share the database file: connections run in WAL mode with a
    busy timeout, and an upsert that still hits a lock is retried with backoff.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS record_collections (
            name TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT NOT NULL
        )
    """
    UPSERT = """
        INSERT INTO record_collections(name, payload, version, updated_at)
        VALUES(?, ?, 1, ?)
        ON CONFLICT(name) DO UPDATE SET
            payload = excluded.payload,
            version = record_collections.version + 1,
            updated_at = excluded.updated_at
    """
    CONNECTION_PRAGMAS = (
        "PRAGMA journal_mode=WAL;",
        "PRAGMA synchronous=NORMAL;",
        f"PRAGMA busy_timeout={PRAGMA_BUSY_TIMEOUT_MS};",
    )

    def __init__(self, db_path: Path | str, name: str) -> None:
        self.db_path = Path(db_path)
        self.name = name

    @asynccontextmanager
    async def _open(self) -> AsyncIterator[aiosqlite.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            for pragma in self.CONNECTION_PRAGMAS:
                await db.execute(pragma)
            await db.execute(self.SCHEMA)
            yield db

    async def _upsert(self, db: aiosqlite.Connection, payload: str) -> None:
        delay = WRITE_RETRY_BASE_DELAY_SEC
        for attempt in range(1, WRITE_RETRY_ATTEMPTS + 1):
            try:
                await db.execute(self.UPSERT, (self.name, payload, utc_now_iso()))
                await db.commit()
                return
            except aiosqlite.OperationalError as error:
                locked = "database is locked" in str(error).lower()
                if not locked or attempt == WRITE_RETRY_ATTEMPTS:
                    raise
                logger.debug("Collection %s locked, retry %s in %.2fs", self.name, attempt, delay)
                await asyncio.sleep(delay)
                delay *= 2

    async def read(self) -> list[Record]:
        try:
            async with self._open() as db:
                async with db.execute(
                    "SELECT payload FROM record_collections WHERE name = ?",
                    (self.name,),
                ) as cur:
                    row = await cur.fetchone()
        except (OSError, aiosqlite.Error) as error:
            raise StorageUnavailableError(self.name, str(error)) from error
        if row is None:
            return []
        try:
            data = json.loads(row["payload"])
        except json.JSONDecodeError as error:
            raise StorageUnavailableError(self.name, f"corrupt JSON: {error}") from error
        return _ensure_record_list(self.name, data)

    async def write(self, records: Sequence[Record]) -> None:
        payload = json.dumps(list(records), ensure_ascii=False, separators=(",", ":"))
        try:
            async with self._open() as db:
                await self._upsert(db, payload)
        except (OSError, aiosqlite.Error) as error:
            raise StorageUnavailableError(self.name, str(error)) from error


class Collection:
    """Serialises read-modify-write cycles on one record store."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.store.name

    async def read(self) -> list[Record]:
        return await self.store.read()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[list[Record]]:
        """Yield the records for in-place mutation; write back only on clean exit."""
        async with self._lock:
            records = await self.store.read()
            yield records
            await self.store.write(records)
            logger.debug("Collection %s written (%s records)", self.name, len(records))
