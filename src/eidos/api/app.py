"""FastAPI application factory."""

import base64
import binascii
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from eidos.api.models import PhotoCapture, SettingsPatch
from eidos.app_logging import configure_logging
from eidos.containers import AppContainer
from eidos.domain.errors import InvalidArgumentError, NotFoundError, PersistenceError
from eidos.domain.models import FilterParameters, Photo, UserSettings
from eidos.services.calibration import (
    compute_filter_parameters,
    filter_for_photo,
    to_css_filter,
)
from eidos.services.capture import draft_from_capture


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument(_: Request, exc: InvalidArgumentError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc)},
        )

    @app.exception_handler(NotFoundError)
    async def not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)}
        )

    @app.exception_handler(PersistenceError)
    async def persistence_failed(_: Request, exc: PersistenceError) -> JSONResponse:
        logger.warning("Request failed to persist: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(exc), "dirty": True},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/settings")
    async def get_settings(request: Request) -> dict[str, object]:
        """Return the current settings."""
        state_container: AppContainer = request.app.state.container
        return _settings_payload(state_container)

    @app.patch("/settings")
    async def patch_settings(
        patch: SettingsPatch, request: Request
    ) -> dict[str, object]:
        """Merge the given fields into the settings."""
        state_container: AppContainer = request.app.state.container
        state_container.store.update_settings(patch.model_dump(exclude_unset=True))
        return _settings_payload(state_container)

    @app.post("/settings/onboarding")
    async def complete_onboarding(request: Request) -> dict[str, object]:
        """Finish calibration and mark onboarding complete."""
        state_container: AppContainer = request.app.state.container
        state_container.calibration.complete()
        return _settings_payload(state_container)

    @app.get("/calibration/preview")
    async def calibration_preview(request: Request) -> dict[str, object]:
        """Return the live preview filter for the current settings."""
        state_container: AppContainer = request.app.state.container
        return _filter_payload(state_container.calibration.preview())

    @app.post("/calibration/refine")
    async def calibration_refine(request: Request) -> dict[str, object]:
        """Apply one calibration refinement."""
        state_container: AppContainer = request.app.state.container
        parameters = state_container.calibration.refine()
        return {
            **_filter_payload(parameters),
            "iteration_count": state_container.store.settings.iteration_count,
            "can_complete": state_container.calibration.can_complete,
        }

    @app.post("/calibration/restart")
    async def calibration_restart(request: Request) -> dict[str, object]:
        """Start a new calibration run."""
        state_container: AppContainer = request.app.state.container
        return _filter_payload(state_container.calibration.restart())

    @app.get("/filters")
    async def filters(archetype: str, iteration_count: int) -> dict[str, object]:
        """Compute filter parameters for explicit inputs."""
        return _filter_payload(compute_filter_parameters(archetype, iteration_count))

    @app.get("/photos")
    async def list_photos(
        request: Request, order: str = "newest"
    ) -> dict[str, list[dict[str, object]]]:
        """Return stored photos ordered by capture time."""
        state_container: AppContainer = request.app.state.container
        if order not in {"newest", "oldest"}:
            raise InvalidArgumentError(f"Unknown photo order {order!r}")
        photos = state_container.store.list_photos(newest_first=order == "newest")
        return {"photos": [_photo_payload(photo) for photo in photos]}

    @app.post("/photos", status_code=status.HTTP_201_CREATED)
    async def add_photo(capture: PhotoCapture, request: Request) -> dict[str, object]:
        """Store a captured photo tagged with the current settings."""
        state_container: AppContainer = request.app.state.container
        try:
            image_bytes = base64.b64decode(capture.image_base64, validate=True)
        except binascii.Error as exc:
            raise InvalidArgumentError("image_base64 is not valid base64") from exc
        draft = draft_from_capture(
            image_bytes,
            state_container.store.settings,
            filter_enabled=capture.filter_enabled,
            image_format=capture.image_format,
        )
        photo = state_container.store.add_photo(draft)
        logger.info("Stored photo %s", photo.id)
        return _photo_payload(photo)

    @app.get("/photos/{photo_id}")
    async def get_photo(photo_id: str, request: Request) -> dict[str, object]:
        """Return a single photo."""
        state_container: AppContainer = request.app.state.container
        return _photo_payload(state_container.store.get_photo(photo_id))

    @app.get("/photos/{photo_id}/filter")
    async def photo_filter(photo_id: str, request: Request) -> dict[str, object]:
        """Return the gallery filter derived from a photo's snapshot."""
        state_container: AppContainer = request.app.state.container
        photo = state_container.store.get_photo(photo_id)
        return _filter_payload(filter_for_photo(photo))

    @app.delete("/photos/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_photo(photo_id: str, request: Request) -> Response:
        """Delete a photo; unknown ids are ignored."""
        state_container: AppContainer = request.app.state.container
        state_container.store.delete_photo(photo_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/reset")
    async def reset(request: Request) -> dict[str, object]:
        """Clear all photos and restore default settings."""
        state_container: AppContainer = request.app.state.container
        state_container.store.reset_all()
        return _settings_payload(state_container)

    return app


def _settings_payload(container: AppContainer) -> dict[str, object]:
    settings: UserSettings = container.store.settings
    return {
        **settings.model_dump(mode="json"),
        "can_complete": container.calibration.can_complete,
        "dirty": container.store.dirty,
    }


def _filter_payload(parameters: FilterParameters | None) -> dict[str, object]:
    return {
        "parameters": asdict(parameters) if parameters is not None else None,
        "css": to_css_filter(parameters),
    }


def _photo_payload(photo: Photo) -> dict[str, object]:
    return photo.model_dump(mode="json")
