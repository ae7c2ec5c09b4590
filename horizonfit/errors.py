"""Exception hierarchy for parameter estimation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import numpy as np

if TYPE_CHECKING:  # pragma: no cover
    from .types import FitResult


class EstimationError(Exception):
    """Base class for every failure raised by the estimator."""


class SimulationError(EstimationError):
    """The integrator could not produce a finite trajectory for these parameters."""


class EmptyRestrictionError(EstimationError, ValueError):
    """A horizon precedes the first observation, leaving nothing to fit."""

    def __init__(self, horizon: float, first_time: float):
        self.horizon = float(horizon)
        self.first_time = float(first_time)
        super().__init__(
            f"Horizon {self.horizon:g} precedes the first observation at t={self.first_time:g}."
        )


class InvalidScheduleError(EstimationError, ValueError):
    """The horizon schedule is empty, not strictly increasing, or exceeds the data."""


class StageFitError(EstimationError):
    """A stage spent its iteration budget without a single finite loss."""

    def __init__(self, horizon: float, initial_parameters, attempts: int):
        self.horizon = float(horizon)
        self.initial_parameters = np.array(initial_parameters, dtype=float)
        self.attempts = int(attempts)
        super().__init__(
            f"Stage at horizon {self.horizon:g} failed: all {self.attempts} evaluations raised "
            f"SimulationError (initial parameters {self.initial_parameters.tolist()})."
        )


class CurriculumFailedError(EstimationError):
    """The curriculum halted because one of its stages failed."""

    def __init__(self, stage_index: int, horizon: float, last_result: Optional[FitResult] = None):
        self.stage_index = int(stage_index)
        self.horizon = float(horizon)
        self.last_result = last_result
        super().__init__(f"Curriculum failed at stage {self.stage_index} (horizon {self.horizon:g}).")


class EstimationCancelledError(EstimationError):
    """The iteration or time budget ran out before any stage completed."""
