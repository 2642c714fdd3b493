"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from eidos.adapters.sqlite_blob_storage import SqliteBlobStorage
from eidos.config import Settings
from eidos.domain.errors import PersistenceError
from eidos.services.calibration_session import CalibrationSession
from eidos.services.store import LocalStore

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: LocalStore
    calibration: CalibrationSession
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container and load persisted state."""
    resolved_settings = settings or Settings()
    storage = SqliteBlobStorage.create(resolved_settings.storage_path)
    store = LocalStore(storage)
    store.load()
    calibration = CalibrationSession(
        store=store,
        min_iterations=resolved_settings.min_calibration_iterations,
        max_iterations=resolved_settings.max_calibration_iterations,
    )

    async def close_resources() -> None:
        if not store.dirty:
            return
        try:
            store.flush()
        except PersistenceError:
            _logger.exception("Unsynced store changes could not be flushed")

    return AppContainer(
        settings=resolved_settings,
        store=store,
        calibration=calibration,
        close_resources=close_resources,
    )
