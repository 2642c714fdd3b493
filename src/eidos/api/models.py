"""Pydantic models for API request payloads."""

from pydantic import BaseModel, ConfigDict, Field

from eidos.domain.models import Archetype


class SettingsPatch(BaseModel):
    """Partial settings update; unset fields are left untouched."""

    model_config = ConfigDict(extra="forbid")

    archetype: Archetype | None = None
    iteration_count: int | None = None
    onboarding_complete: bool | None = None


class PhotoCapture(BaseModel):
    """Captured image posted by the camera collaborator."""

    image_base64: str = Field(min_length=1)
    image_format: str | None = None
    filter_enabled: bool = True
