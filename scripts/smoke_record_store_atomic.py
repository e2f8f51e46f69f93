#!/usr/bin/env python3
"""
Smoke test: durable record stores.

Checks:
- JSON store: missing/empty file reads as [], write replaces atomically, no temp files left
- corrupt JSON or a non-array payload surfaces StorageUnavailableError instead of []
- write into an unusable directory surfaces StorageUnavailableError
- a failed transaction leaves the stored collection untouched
- concurrent transactions on one collection keep every change (JSON and SQLite backends)
- concurrent directory adds through the service are all kept

Run:
  python3 scripts/smoke_record_store_atomic.py
"""

from __future__ import annotations

import asyncio
import json
import shutil
import sys
import tempfile
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


async def _concurrent_appends(collection, count: int) -> None:
    async def _append(idx: int) -> None:
        async with collection.transaction() as records:
            await asyncio.sleep(0)
            records.append({"id": str(idx)})

    await asyncio.gather(*(_append(idx) for idx in range(count)))


async def _run_checks(data_dir: Path) -> None:
    from directory.errors import StorageUnavailableError  # noqa: WPS433
    from directory.repository import DirectoryRepository  # noqa: WPS433
    from directory.service import DirectoryService  # noqa: WPS433
    from directory.storage import Collection, JsonFileRecordStore, SqliteRecordStore  # noqa: WPS433

    path = data_dir / "things.json"
    store = JsonFileRecordStore(path)
    _assert(store.name == "things", f"name defaults to the file stem: {store.name}")
    _assert(await store.read() == [], "missing file reads as empty collection")

    path.write_text("   ", encoding="utf-8")
    _assert(await store.read() == [], "empty file reads as empty collection")

    await store.write([{"id": "1", "name": "Café"}])
    _assert(json.loads(path.read_text(encoding="utf-8")) == [{"id": "1", "name": "Café"}], "payload persisted")
    await store.write([{"id": "2"}])
    _assert(await store.read() == [{"id": "2"}], "write replaces the whole collection")
    leftovers = [p.name for p in data_dir.iterdir() if p.name.endswith(".tmp")]
    _assert(not leftovers, f"temp files must not be left behind: {leftovers}")

    broken = data_dir / "broken.json"
    broken.write_text("[{\"id\": ", encoding="utf-8")
    try:
        await JsonFileRecordStore(broken).read()
    except StorageUnavailableError as error:
        _assert(error.collection == "broken", f"error names the collection: {error.collection}")
    else:
        raise AssertionError("corrupt JSON must not read as []")

    not_a_list = data_dir / "object.json"
    not_a_list.write_text("{\"id\": 1}", encoding="utf-8")
    try:
        await JsonFileRecordStore(not_a_list).read()
    except StorageUnavailableError:
        pass
    else:
        raise AssertionError("non-array payload must be rejected")

    blocker = data_dir / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    try:
        await JsonFileRecordStore(blocker / "nested.json").write([{"id": "x"}])
    except StorageUnavailableError:
        pass
    else:
        raise AssertionError("unwritable location must raise StorageUnavailableError")

    collection = Collection(store)
    try:
        async with collection.transaction() as records:
            records.append({"id": "3"})
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    _assert(await store.read() == [{"id": "2"}], "failed transaction must not write")

    json_collection = Collection(JsonFileRecordStore(data_dir / "concurrent.json"))
    await _concurrent_appends(json_collection, 20)
    stored_ids = sorted(int(r["id"]) for r in await json_collection.read())
    _assert(stored_ids == list(range(20)), f"JSON backend lost updates: {stored_ids}")

    sqlite_store = SqliteRecordStore(data_dir / "records.db", "things")
    _assert(await sqlite_store.read() == [], "missing sqlite collection reads as []")
    await sqlite_store.write([{"id": "a"}])
    _assert(await sqlite_store.read() == [{"id": "a"}], "sqlite payload persisted")
    other = SqliteRecordStore(data_dir / "records.db", "others")
    _assert(await other.read() == [], "collections are isolated by name")

    sqlite_collection = Collection(SqliteRecordStore(data_dir / "records.db", "concurrent"))
    await _concurrent_appends(sqlite_collection, 10)
    _assert(len(await sqlite_collection.read()) == 10, "SQLite backend lost updates")

    for repository in (
        DirectoryRepository.json_files(data_dir / "json-backend"),
        DirectoryRepository.sqlite(data_dir / "sqlite-backend" / "directory.db"),
    ):
        service = DirectoryService(repository)
        await asyncio.gather(
            *(
                service.add_business(
                    business_name=f"Shop {idx}",
                    owner_name="Owner",
                    email=f"shop{idx}@x.com",
                    phone="",
                    business_type="Retail",
                    description="",
                    location="Austin, TX",
                    added_by="host-1",
                )
                for idx in range(8)
            )
        )
        names = sorted(e.business_name for e in await service.list_businesses())
        _assert(names == sorted(f"Shop {idx}" for idx in range(8)), f"concurrent adds lost: {names}")


def main() -> None:
    tmpdir = Path(tempfile.mkdtemp(prefix="directory-smoke-store-"))
    try:
        sys.path.insert(0, str(REPO_ROOT / "src"))
        asyncio.run(_run_checks(tmpdir))
        print("OK: record store smoke test passed.")
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


if __name__ == "__main__":
    main()
