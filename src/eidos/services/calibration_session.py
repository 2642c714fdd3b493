"""Calibration flow driven against the local store."""

from dataclasses import dataclass

from eidos.domain.errors import InvalidArgumentError
from eidos.domain.models import Archetype, FilterParameters, UserSettings
from eidos.services.calibration import compute_filter_parameters
from eidos.services.store import LocalStore


@dataclass
class CalibrationSession:
    """Service for the refine-preview-complete calibration loop."""

    store: LocalStore
    min_iterations: int = 3
    max_iterations: int = 12

    @property
    def can_complete(self) -> bool:
        """Return True once enough refinements have been applied."""
        return self.store.settings.iteration_count >= self.min_iterations

    def preview(self) -> FilterParameters:
        """Return the filter parameters for the current settings."""
        settings = self.store.settings
        return compute_filter_parameters(settings.archetype, settings.iteration_count)

    def refine(self) -> FilterParameters:
        """Apply one more refinement and return the resulting parameters."""
        settings = self.store.record_iteration(limit=self.max_iterations)
        return compute_filter_parameters(settings.archetype, settings.iteration_count)

    def select_archetype(self, archetype: Archetype | str) -> FilterParameters:
        """Switch the filter curve family."""
        self.store.update_settings({"archetype": archetype})
        return self.preview()

    def restart(self) -> FilterParameters:
        """Start a new calibration run from zero iterations."""
        self.store.restart_calibration()
        return self.preview()

    def complete(self) -> UserSettings:
        """Finish calibration and mark onboarding as complete."""
        if not self.can_complete:
            raise InvalidArgumentError(
                f"Calibration needs at least {self.min_iterations} iterations"
            )
        self.store.complete_onboarding()
        return self.store.settings
