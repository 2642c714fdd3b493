"""Calibration engine mapping an archetype and iteration count to filter values.

Every channel grows linearly with the iteration count and is deliberately left
unclamped; calibration sessions cap the count before values run away, and any
display clamping belongs to the rendering layer.
"""

from dataclasses import dataclass

from eidos.domain.errors import InvalidArgumentError
from eidos.domain.models import Archetype, FilterParameters, Photo

BRIGHTNESS_SLOPE = 0.03


@dataclass(frozen=True)
class _Curve:
    contrast_slope: float
    saturation_base: float
    saturation_slope: float
    sepia_slope: float | None = None


_CURVES: dict[Archetype, _Curve] = {
    Archetype.CLASSIC: _Curve(
        contrast_slope=0.02,
        saturation_base=1.0,
        saturation_slope=0.05,
        sepia_slope=0.05,
    ),
    Archetype.EDITORIAL: _Curve(
        contrast_slope=0.04,
        saturation_base=0.9,
        saturation_slope=0.02,
    ),
    Archetype.NATURAL: _Curve(
        contrast_slope=0.02,
        saturation_base=1.0,
        saturation_slope=0.05,
    ),
}


def compute_filter_parameters(
    archetype: Archetype | str, iteration_count: int
) -> FilterParameters:
    """Return the filter parameters for an archetype after n refinements."""
    curve = _CURVES[_parse_archetype(archetype)]
    if isinstance(iteration_count, bool) or not isinstance(iteration_count, int):
        raise InvalidArgumentError(
            f"iteration_count must be an integer, got {iteration_count!r}"
        )
    if iteration_count < 0:
        raise InvalidArgumentError(
            f"iteration_count must be non-negative, got {iteration_count}"
        )
    sepia = None
    if curve.sepia_slope is not None:
        sepia = iteration_count * curve.sepia_slope
    return FilterParameters(
        brightness=1 + iteration_count * BRIGHTNESS_SLOPE,
        contrast=1 + iteration_count * curve.contrast_slope,
        saturation=curve.saturation_base + iteration_count * curve.saturation_slope,
        sepia=sepia,
    )


def filter_for_photo(photo: Photo) -> FilterParameters | None:
    """Return the gallery filter for a photo's stored snapshot."""
    if not photo.filter_enabled:
        return None
    return compute_filter_parameters(photo.archetype, photo.iteration_count)


def to_css_filter(parameters: FilterParameters | None) -> str:
    """Format parameters as a CSS filter expression."""
    if parameters is None:
        return "none"
    parts = [
        f"brightness({_format_number(parameters.brightness)})",
        f"contrast({_format_number(parameters.contrast)})",
        f"saturate({_format_number(parameters.saturation)})",
    ]
    if parameters.sepia is not None:
        parts.append(f"sepia({_format_number(parameters.sepia)})")
    return " ".join(parts)


def _parse_archetype(value: Archetype | str) -> Archetype:
    try:
        return Archetype(value)
    except ValueError as exc:
        raise InvalidArgumentError(f"Unknown archetype {value!r}") from exc


def _format_number(value: float) -> str:
    text = repr(round(value, 10))
    return text[:-2] if text.endswith(".0") else text
