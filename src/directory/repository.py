"""Named collections backing the directory services."""

from __future__ import annotations

from pathlib import Path

from config import CFG, STORAGE_BACKEND_SQLITE
from directory.storage import Collection, JsonFileRecordStore, RecordStore, SqliteRecordStore

BUSINESS_DIRECTORY = "business-directory"
REVERSE_PROPOSALS = "reverse-proposals"
EXTERNAL_PROPOSALS = "external-proposals"


class DirectoryRepository:
    """Owns the three independent collections.

    There is no cross-collection transaction: a proposal write and the matching
    directory counter update are two separate writes.
    """

    def __init__(
        self,
        businesses: RecordStore,
        reverse_proposals: RecordStore,
        external_proposals: RecordStore,
    ) -> None:
        self.businesses = Collection(businesses)
        self.reverse_proposals = Collection(reverse_proposals)
        self.external_proposals = Collection(external_proposals)

    @classmethod
    def json_files(cls, data_dir: Path | str) -> "DirectoryRepository":
        base = Path(data_dir)
        return cls(
            JsonFileRecordStore(base / f"{BUSINESS_DIRECTORY}.json", BUSINESS_DIRECTORY),
            JsonFileRecordStore(base / f"{REVERSE_PROPOSALS}.json", REVERSE_PROPOSALS),
            JsonFileRecordStore(base / f"{EXTERNAL_PROPOSALS}.json", EXTERNAL_PROPOSALS),
        )

    @classmethod
    def sqlite(cls, db_path: Path | str) -> "DirectoryRepository":
        return cls(
            SqliteRecordStore(db_path, BUSINESS_DIRECTORY),
            SqliteRecordStore(db_path, REVERSE_PROPOSALS),
            SqliteRecordStore(db_path, EXTERNAL_PROPOSALS),
        )


_SHARED_REPOSITORIES: dict[tuple[str, str], DirectoryRepository] = {}


def get_repository() -> DirectoryRepository:
    """Shared repository for the configured storage backend.

    Services built without an explicit repository must share one set of collection
    locks, so one instance is kept per backend location.
    """
    if CFG.storage_backend == STORAGE_BACKEND_SQLITE:
        key = (STORAGE_BACKEND_SQLITE, str(Path(CFG.db_path).resolve()))
    else:
        key = (CFG.storage_backend, str(Path(CFG.data_dir).resolve()))
    repository = _SHARED_REPOSITORIES.get(key)
    if repository is None:
        if CFG.storage_backend == STORAGE_BACKEND_SQLITE:
            repository = DirectoryRepository.sqlite(CFG.db_path)
        else:
            repository = DirectoryRepository.json_files(CFG.data_dir)
        _SHARED_REPOSITORIES[key] = repository
    return repository
