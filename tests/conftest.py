"""Shared test fixtures."""

import logging
from collections.abc import Collection, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from eidos.config import Settings
from eidos.containers import AppContainer
from eidos.domain.errors import PersistenceError
from eidos.domain.models import Archetype, PhotoDraft
from eidos.services.calibration_session import CalibrationSession
from eidos.services.storage import BlobStorage, Blobs, InMemoryBlobStorage, Merge
from eidos.services.store import LocalStore


@dataclass
class FlakyBlobStorage(BlobStorage):
    """Blob storage that fails reads or writes on demand."""

    inner: InMemoryBlobStorage = field(default_factory=InMemoryBlobStorage)
    fail_reads: bool = False
    fail_writes: bool = False
    writes: list[dict[str, bytes | None]] = field(default_factory=list)

    def read(self, key: str) -> bytes | None:
        if self.fail_reads:
            raise PersistenceError(f"read failed for {key}")
        return self.inner.read(key)

    def write(self, entries: Mapping[str, bytes | None]) -> None:
        if self.fail_writes:
            raise PersistenceError("disk full")
        self.writes.append(dict(entries))
        self.inner.write(entries)

    def update(self, keys: Collection[str], merge: Merge) -> None:
        if self.fail_reads or self.fail_writes:
            raise PersistenceError("disk full")

        def recording_merge(current: dict[str, bytes | None]) -> Blobs:
            entries = merge(current)
            if entries:
                self.writes.append(dict(entries))
            return entries

        self.inner.update(keys, recording_merge)


def make_draft(
    archetype: Archetype = Archetype.EDITORIAL,
    iteration_count: int = 3,
    filter_enabled: bool = True,
    image_data: str = "x",
) -> PhotoDraft:
    return PhotoDraft(
        image_data=image_data,
        archetype=archetype,
        iteration_count=iteration_count,
        filter_enabled=filter_enabled,
    )


@pytest.fixture(autouse=True)
def _reset_eidos_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("eidos")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def storage() -> FlakyBlobStorage:
    return FlakyBlobStorage()


@pytest.fixture
def store(storage: FlakyBlobStorage) -> LocalStore:
    local_store = LocalStore(storage)
    local_store.load()
    return local_store


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(storage_path=str(tmp_path / "eidos.sqlite3"))


@pytest.fixture
def container(settings: Settings, store: LocalStore) -> AppContainer:
    calibration = CalibrationSession(
        store=store,
        min_iterations=settings.min_calibration_iterations,
        max_iterations=settings.max_calibration_iterations,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        store=store,
        calibration=calibration,
        close_resources=close_resources,
    )
