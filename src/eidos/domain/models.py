"""Domain models for calibration settings and captured photos."""

from dataclasses import dataclass
from enum import StrEnum

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class Archetype(StrEnum):
    """Filter curve family selected during calibration."""

    CLASSIC = "classic"
    EDITORIAL = "editorial"
    NATURAL = "natural"


class UserSettings(BaseModel):
    """Process-wide calibration settings owned by the store."""

    model_config = ConfigDict(frozen=True)

    archetype: Archetype = Archetype.NATURAL
    iteration_count: int = Field(default=0, ge=0, strict=True)
    onboarding_complete: bool = Field(default=False, strict=True)


class PhotoDraft(BaseModel):
    """Caller-supplied photo content plus its settings snapshot."""

    model_config = ConfigDict(frozen=True)

    image_data: str = Field(min_length=1)
    archetype: Archetype
    iteration_count: int = Field(ge=0, strict=True)
    filter_enabled: bool = Field(strict=True)


class Photo(PhotoDraft):
    """Immutable captured photo with the settings in effect at capture time."""

    id: str = Field(min_length=1)
    captured_at: AwareDatetime


@dataclass(frozen=True)
class FilterParameters:
    """Numeric adjustments consumed by the rendering layer."""

    brightness: float
    contrast: float
    saturation: float
    sepia: float | None = None
