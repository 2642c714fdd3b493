"""Encoding and migration of the persisted settings and photo records.

Two records live under stable keys. Both are UTF-8 JSON objects carrying a
``schema_version``. Version 0 is the layout written by the earlier web client:
settings with camelCase fields and photos as a bare array with millisecond
timestamps. Those payloads are upgraded on read and rewritten in the current
layout on the next save.
"""

import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from pydantic import ValidationError

from eidos.domain.models import Photo, UserSettings

_logger = logging.getLogger(__name__)

SETTINGS_KEY = "eidos_settings"
PHOTOS_KEY = "eidos_photos"
SCHEMA_VERSION = 1

_LEGACY_SETTINGS_FIELDS = {
    "archetype": "archetype",
    "iterations": "iteration_count",
    "hasCompletedOnboarding": "onboarding_complete",
}


class CorruptPayloadError(ValueError):
    """Raised when a persisted record cannot be decoded."""


def encode_settings(settings: UserSettings) -> bytes:
    """Serialize settings as a versioned JSON document."""
    payload = {"schema_version": SCHEMA_VERSION, **settings.model_dump(mode="json")}
    return json.dumps(payload, sort_keys=True).encode("utf-8")


def encode_photos(photos: Iterable[Photo]) -> bytes:
    """Serialize the photo collection as a versioned JSON document."""
    payload = {
        "schema_version": SCHEMA_VERSION,
        "photos": [photo.model_dump(mode="json") for photo in photos],
    }
    return json.dumps(payload).encode("utf-8")


def decode_settings(raw: bytes) -> UserSettings:
    """Decode persisted settings, merging stored fields over the defaults."""
    payload = _decode_json(raw)
    if not isinstance(payload, dict):
        raise CorruptPayloadError("settings payload is not an object")
    version = payload.pop("schema_version", 0)
    if version == 0:
        payload = _upgrade_legacy_settings(payload)
    elif version != SCHEMA_VERSION:
        raise CorruptPayloadError(f"unsupported settings schema_version {version!r}")
    merged = {**UserSettings().model_dump(), **payload}
    try:
        return UserSettings.model_validate(merged)
    except ValidationError as exc:
        raise CorruptPayloadError("settings payload failed validation") from exc


def decode_photos(raw: bytes) -> list[Photo]:
    """Decode the persisted photo collection.

    Individual records that fail validation or repeat an earlier id are
    dropped and logged; the rest of the collection is kept in order.
    """
    payload = _decode_json(raw)
    if isinstance(payload, list):
        records = [_upgrade_legacy_photo(record) for record in payload]
    elif isinstance(payload, dict):
        version = payload.get("schema_version")
        if version != SCHEMA_VERSION:
            raise CorruptPayloadError(f"unsupported photos schema_version {version!r}")
        records = payload.get("photos")
        if not isinstance(records, list):
            raise CorruptPayloadError("photos payload has no photo list")
    else:
        raise CorruptPayloadError("photos payload is not an object or array")

    photos: list[Photo] = []
    seen: set[str] = set()
    for index, record in enumerate(records):
        try:
            photo = Photo.model_validate(record)
        except ValidationError:
            _logger.warning("Dropping invalid photo record at index %s", index)
            continue
        if photo.id in seen:
            _logger.warning("Dropping duplicate photo id %s", photo.id)
            continue
        seen.add(photo.id)
        photos.append(photo)
    return photos


def _decode_json(raw: bytes) -> object:
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise CorruptPayloadError("payload is not valid UTF-8 JSON") from exc


def _upgrade_legacy_settings(payload: dict[str, object]) -> dict[str, object]:
    """Map version 0 settings onto the current field names."""
    return {
        _LEGACY_SETTINGS_FIELDS.get(key, key): value for key, value in payload.items()
    }


def _upgrade_legacy_photo(record: object) -> object:
    """Map a version 0 photo record onto the current field names."""
    if not isinstance(record, dict):
        return record
    return {
        "id": record.get("id"),
        "image_data": record.get("originalUrl"),
        "captured_at": _from_epoch_millis(record.get("timestamp")),
        "archetype": record.get("archetype"),
        "iteration_count": record.get("iterations"),
        "filter_enabled": record.get("eidosMode"),
    }


def _from_epoch_millis(value: object) -> datetime | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    try:
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None
