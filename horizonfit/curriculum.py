"""Progressive-horizon (curriculum) fitting.

The driver fits on the shortest horizon first and feeds each stage's best
parameters forward as the next stage's initial guess, up to the full
observation span. Fitting an oscillatory signal on its full span from a poor
guess tends to settle in a local minimum; the short early windows keep the
fit inside the basin of the true parameters.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from .errors import (
    EstimationCancelledError,
    CurriculumFailedError,
    InvalidScheduleError,
    StageFitError,
)
from .losses import LossEvaluator
from .models import Model
from .observations import ObservationSet
from .optimize import StageOptimizer
from .types import EstimationConfig, EstimationStatus, FitResult

logger = logging.getLogger(__name__)

StageCallback = Callable[[int, FitResult], None]


def validate_schedule(horizon_schedule: Sequence[float], observations: ObservationSet) -> List[float]:
    """Check a schedule against the data and return it as a list of floats.

    Raises ``InvalidScheduleError`` for an empty, non-finite, non-increasing or
    too-long schedule and ``EmptyRestrictionError`` for a horizon before the
    first observation.
    """
    try:
        schedule = [float(h) for h in horizon_schedule]
    except (TypeError, ValueError) as exc:
        raise InvalidScheduleError(f"Horizon schedule must be a sequence of numbers: {exc}") from exc
    if not schedule:
        raise InvalidScheduleError("Horizon schedule is empty")
    if not all(np.isfinite(schedule)):
        raise InvalidScheduleError(f"Horizon schedule contains non-finite values: {schedule}")
    for prev, nxt in zip(schedule[:-1], schedule[1:]):
        if nxt <= prev:
            raise InvalidScheduleError(f"Horizon schedule must be strictly increasing, got {schedule}")
    if schedule[-1] > observations.t_max:
        raise InvalidScheduleError(
            f"Horizon {schedule[-1]:g} exceeds the last observation time {observations.t_max:g}"
        )
    for h in schedule:
        observations.restrict(h)
    return schedule


def build_schedule(observations: ObservationSet, fractions: Sequence[float]) -> List[float]:
    """Horizons at cumulative ``fractions`` of the observed span, ending at the full horizon.

    ``[0.25, 0.5, 1.0]`` over data on ``[0, 40]`` gives ``[10, 20, 40]``. Fractions
    must lie in (0, 1]; a missing final 1.0 is appended.
    """
    fracs = [float(f) for f in fractions]
    if not fracs or any(not 0.0 < f <= 1.0 for f in fracs):
        raise InvalidScheduleError(f"Schedule fractions must lie in (0, 1], got {fracs}")
    if fracs[-1] != 1.0:
        fracs.append(1.0)
    span = observations.t_max - observations.t_min
    schedule = [observations.t_min + f * span for f in fracs]
    schedule[-1] = observations.t_max
    return validate_schedule(schedule, observations)


class CurriculumDriver:
    """Runs the stage optimizer over a strictly increasing horizon schedule.

    ``status`` moves PENDING -> RUNNING -> CONVERGED or FAILED, with
    ``stage_index`` naming the stage being (or last) run. A failing stage halts
    the curriculum with ``CurriculumFailedError``; it never falls back to the
    previous stage's parameters. When ``max_total_iterations`` or ``timeout``
    stops the run early the status becomes CANCELLED and the last completed
    stage's result is returned.
    """

    def __init__(
        self,
        config: Union[EstimationConfig, Dict, None] = None,
        callback: Optional[StageCallback] = None,
    ):
        self.config = EstimationConfig.from_dict(config)
        self.callback = callback
        self.status = EstimationStatus.PENDING
        self.stage_index: Optional[int] = None
        self.result: Optional[FitResult] = None

    def _budget_left(self, started: float, spent: int) -> Optional[int]:
        """Iterations available for the next stage, or None when the budget is exhausted."""
        cfg = self.config
        if cfg.timeout is not None and time.monotonic() - started >= cfg.timeout:
            return None
        if cfg.max_total_iterations is None:
            return cfg.max_iterations_per_stage
        remaining = cfg.max_total_iterations - spent
        if remaining <= 0:
            return None
        return min(cfg.max_iterations_per_stage, remaining)

    def estimate(
        self,
        initial_guess,
        horizon_schedule: Sequence[float],
        observations: ObservationSet,
        model: Model,
        initial_state="from_data",
        t0: Optional[float] = None,
    ) -> FitResult:
        theta = np.array(initial_guess, dtype=float)
        if theta.ndim != 1 or theta.size == 0 or not np.all(np.isfinite(theta)):
            raise ValueError(f"initial_guess must be a finite non-empty 1-D vector, got {initial_guess!r}")
        schedule = validate_schedule(horizon_schedule, observations)

        evaluator = LossEvaluator(model, observations, initial_state=initial_state, t0=t0)
        stage = StageOptimizer.from_config(evaluator, self.config)

        self.status = EstimationStatus.PENDING
        self.stage_index = None
        self.result = None
        started = time.monotonic()
        spent = 0

        for index, horizon in enumerate(schedule):
            budget = self._budget_left(started, spent)
            if budget is None:
                return self._cancel(index, horizon)

            self.status = EstimationStatus.RUNNING
            self.stage_index = index
            logger.info("Stage %d/%d: fitting horizon %g from %s", index + 1, len(schedule), horizon, theta.tolist())
            try:
                result = stage.fit(theta, horizon, max_iterations=budget)
            except StageFitError as exc:
                self.status = EstimationStatus.FAILED
                logger.error("Stage %d failed at horizon %g: %s", index, horizon, exc)
                raise CurriculumFailedError(index, horizon, self.result) from exc

            spent += result.iterations
            self.result = result
            theta = result.parameters
            logger.info(
                "Stage %d/%d done: loss=%.6e after %d iterations, parameters=%s",
                index + 1, len(schedule), result.achieved_loss, result.iterations, result.parameters.tolist(),
            )
            if self.callback is not None:
                self.callback(index, result)

        self.status = EstimationStatus.CONVERGED
        return self.result

    def _cancel(self, index: int, horizon: float) -> FitResult:
        self.status = EstimationStatus.CANCELLED
        if self.result is None:
            raise EstimationCancelledError(f"Budget exhausted before stage {index} (horizon {horizon:g}) could run")
        self.result = replace(self.result, status=EstimationStatus.CANCELLED)
        logger.warning(
            "Budget exhausted before stage %d (horizon %g); returning the stage %d result at horizon %g",
            index, horizon, self.stage_index, self.result.horizon,
        )
        return self.result


def estimate_parameters(
    model: Model,
    observations: ObservationSet,
    initial_guess,
    horizon_schedule: Sequence[float],
    config: Union[EstimationConfig, Dict, None] = None,
    initial_state="from_data",
    t0: Optional[float] = None,
    callback: Optional[StageCallback] = None,
) -> FitResult:
    """Fit ``model`` to ``observations`` over ``horizon_schedule`` starting from ``initial_guess``.

    Returns the final stage's ``FitResult``. If a budget ran out first, the last
    completed stage's result comes back with ``status`` CANCELLED. Failures raise
    ``EstimationError`` subclasses (``CurriculumFailedError`` names the failing stage).
    """
    driver = CurriculumDriver(config, callback=callback)
    return driver.estimate(initial_guess, horizon_schedule, observations, model, initial_state=initial_state, t0=t0)
