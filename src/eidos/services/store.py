"""Local store owning the calibration settings and the photo archive."""

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from pydantic import ValidationError

from eidos.domain.errors import InvalidArgumentError, NotFoundError, PersistenceError
from eidos.domain.models import Photo, PhotoDraft, UserSettings
from eidos.services.state_codec import (
    PHOTOS_KEY,
    SETTINGS_KEY,
    CorruptPayloadError,
    decode_photos,
    decode_settings,
    encode_photos,
    encode_settings,
)
from eidos.services.storage import BlobStorage, Blobs

_logger = logging.getLogger(__name__)

_SETTINGS_FIELDS = frozenset(UserSettings.model_fields)
_KEYS = (SETTINGS_KEY, PHOTOS_KEY)

Mutation = Callable[
    [UserSettings, tuple[Photo, ...]],
    tuple[UserSettings, tuple[Photo, ...]] | None,
]


@dataclass(frozen=True)
class StoreState:
    """Snapshot of the store contents returned by ``load``."""

    settings: UserSettings
    photos: tuple[Photo, ...]


@dataclass
class LocalStore:
    """Owns settings and photos and mediates every read and write to storage.

    Every mutation re-reads the persisted records inside one storage update,
    applies itself to that state and writes the touched keys back, so stores
    sharing a database do not overwrite each other. A failed write raises
    ``PersistenceError`` without rolling back memory; the store is then marked
    dirty, and until a write succeeds memory is authoritative and each write
    carries the full state.
    """

    storage: BlobStorage
    _settings: UserSettings = field(default_factory=UserSettings, init=False)
    _photos: tuple[Photo, ...] = field(default=(), init=False)
    _dirty: bool = field(default=False, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    @property
    def settings(self) -> UserSettings:
        """Return the current settings."""
        with self._lock:
            return self._settings

    @property
    def photos(self) -> tuple[Photo, ...]:
        """Return photos in store order, most recent first."""
        with self._lock:
            return self._photos

    @property
    def dirty(self) -> bool:
        """Return True when memory holds changes that failed to persist."""
        with self._lock:
            return self._dirty

    def load(self) -> StoreState:
        """Read settings and photos from storage, falling back to defaults."""
        with self._lock:
            self._settings = self._settings_from(self._read(SETTINGS_KEY))
            self._photos = self._photos_from(self._read(PHOTOS_KEY))
            self._dirty = False
            _logger.info(
                "Loaded store: archetype=%s iterations=%s photos=%s",
                self._settings.archetype,
                self._settings.iteration_count,
                len(self._photos),
            )
            return StoreState(settings=self._settings, photos=self._photos)

    def get_photo(self, photo_id: str) -> Photo:
        """Return a photo by id."""
        for photo in self.photos:
            if photo.id == photo_id:
                return photo
        raise NotFoundError(f"Photo {photo_id} not found")

    def list_photos(self, newest_first: bool = True) -> list[Photo]:
        """Return photos sorted by capture time for display."""
        photos = self.photos
        if newest_first:
            return sorted(photos, key=lambda photo: photo.captured_at, reverse=True)
        return sorted(reversed(photos), key=lambda photo: photo.captured_at)

    def add_photo(self, draft: PhotoDraft) -> Photo:
        """Materialize a draft into a photo and insert it at the head."""
        created: list[Photo] = []

        def insert(
            settings: UserSettings, photos: tuple[Photo, ...]
        ) -> tuple[UserSettings, tuple[Photo, ...]]:
            photo = Photo(
                id=_new_photo_id(photos),
                captured_at=datetime.now(tz=UTC),
                **draft.model_dump(),
            )
            created.append(photo)
            return settings, (photo, *photos)

        with self._lock:
            self._commit((PHOTOS_KEY,), insert)
        return created[-1]

    def delete_photo(self, photo_id: str) -> None:
        """Remove a photo by id; absent ids are ignored."""

        def remove(
            settings: UserSettings, photos: tuple[Photo, ...]
        ) -> tuple[UserSettings, tuple[Photo, ...]] | None:
            remaining = tuple(photo for photo in photos if photo.id != photo_id)
            if len(remaining) == len(photos):
                return None
            return settings, remaining

        with self._lock:
            self._commit((PHOTOS_KEY,), remove)

    def update_settings(self, partial: Mapping[str, object]) -> None:
        """Shallow-merge the given fields into the current settings."""
        unknown = set(partial) - _SETTINGS_FIELDS
        if unknown:
            raise InvalidArgumentError(
                f"Unknown settings fields: {', '.join(sorted(unknown))}"
            )

        def merge(
            settings: UserSettings, photos: tuple[Photo, ...]
        ) -> tuple[UserSettings, tuple[Photo, ...]]:
            try:
                updated = UserSettings.model_validate(
                    {**settings.model_dump(), **partial}
                )
            except ValidationError as exc:
                raise InvalidArgumentError(f"Invalid settings update: {exc}") from exc
            if updated.iteration_count < settings.iteration_count:
                raise InvalidArgumentError(
                    "iteration_count cannot decrease; restart the calibration instead"
                )
            if settings.onboarding_complete and not updated.onboarding_complete:
                raise InvalidArgumentError(
                    "onboarding_complete can only be cleared by a full reset"
                )
            return updated, photos

        with self._lock:
            self._commit((SETTINGS_KEY,), merge)

    def complete_onboarding(self) -> None:
        """Mark onboarding as complete."""

        def complete(
            settings: UserSettings, photos: tuple[Photo, ...]
        ) -> tuple[UserSettings, tuple[Photo, ...]] | None:
            if settings.onboarding_complete:
                return None
            return settings.model_copy(update={"onboarding_complete": True}), photos

        with self._lock:
            self._commit((SETTINGS_KEY,), complete)

    def record_iteration(self, limit: int | None = None) -> UserSettings:
        """Increment the iteration count by one and return the new settings."""

        def increment(
            settings: UserSettings, photos: tuple[Photo, ...]
        ) -> tuple[UserSettings, tuple[Photo, ...]]:
            count = settings.iteration_count
            if limit is not None and count >= limit:
                raise InvalidArgumentError(
                    f"Calibration is capped at {limit} iterations"
                )
            return settings.model_copy(update={"iteration_count": count + 1}), photos

        with self._lock:
            self._commit((SETTINGS_KEY,), increment)
            return self._settings

    def restart_calibration(self) -> None:
        """Explicitly reset the iteration count to zero."""

        def restart(
            settings: UserSettings, photos: tuple[Photo, ...]
        ) -> tuple[UserSettings, tuple[Photo, ...]]:
            return settings.model_copy(update={"iteration_count": 0}), photos

        with self._lock:
            self._commit((SETTINGS_KEY,), restart)

    def reset_all(self) -> None:
        """Clear every photo and restore default settings in one batch."""
        with self._lock:
            self._photos = ()
            self._settings = UserSettings()
            self._write({SETTINGS_KEY: None, PHOTOS_KEY: None})
            _logger.info("Store reset to defaults")

    def flush(self) -> None:
        """Persist the full in-memory state."""
        with self._lock:
            self._write(self._full_state())

    def _commit(self, keys: tuple[str, ...], mutation: Mutation) -> None:
        """Apply a mutation to the freshest persisted state and save its keys."""
        applied = False

        def merge(current: dict[str, bytes | None]) -> Blobs:
            nonlocal applied
            was_dirty = self._dirty
            if not was_dirty:
                self._settings = self._settings_from(current.get(SETTINGS_KEY))
                self._photos = self._photos_from(current.get(PHOTOS_KEY))
            result = mutation(self._settings, self._photos)
            applied = True
            if result is not None:
                self._settings, self._photos = result
            if was_dirty:
                return self._full_state()
            if result is None:
                return {}
            state = self._full_state()
            return {key: state[key] for key in keys}

        try:
            self.storage.update(_KEYS, merge)
        except PersistenceError:
            if not applied:
                result = mutation(self._settings, self._photos)
                if result is not None:
                    self._settings, self._photos = result
            self._dirty = True
            _logger.exception("Failed to persist %s", ", ".join(keys))
            raise
        self._dirty = False

    def _write(self, entries: Blobs) -> None:
        try:
            self.storage.write(entries)
        except PersistenceError:
            self._dirty = True
            _logger.exception("Failed to persist %s", ", ".join(sorted(entries)))
            raise
        self._dirty = False

    def _full_state(self) -> dict[str, bytes | None]:
        return {
            SETTINGS_KEY: encode_settings(self._settings),
            PHOTOS_KEY: encode_photos(self._photos),
        }

    def _settings_from(self, raw: bytes | None) -> UserSettings:
        if raw is None:
            return UserSettings()
        try:
            return decode_settings(raw)
        except CorruptPayloadError:
            _logger.warning(
                "Stored settings are corrupt; using defaults", exc_info=True
            )
            return UserSettings()

    def _photos_from(self, raw: bytes | None) -> tuple[Photo, ...]:
        if raw is None:
            return ()
        try:
            return tuple(decode_photos(raw))
        except CorruptPayloadError:
            _logger.warning(
                "Stored photos are corrupt; starting with an empty archive",
                exc_info=True,
            )
            return ()

    def _read(self, key: str) -> bytes | None:
        try:
            return self.storage.read(key)
        except PersistenceError:
            _logger.warning("Failed to read %s; using defaults", key, exc_info=True)
            return None


def _new_photo_id(photos: tuple[Photo, ...]) -> str:
    existing = {photo.id for photo in photos}
    photo_id = uuid4().hex
    while photo_id in existing:
        photo_id = uuid4().hex
    return photo_id
