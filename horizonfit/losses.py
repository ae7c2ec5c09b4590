from __future__ import annotations

from typing import Callable, Optional, Tuple, Union

import numpy as np

from .errors import SimulationError
from .models import Model
from .observations import ObservationSet


class LossEvaluator:
    """Sum-of-squares discrepancy between a simulated trajectory and the observations up to a horizon.

    ``initial_state`` is either an explicit state vector or ``"from_data"``, which
    takes the first observation as the initial state at ``t0``. ``t0`` defaults to
    the first observation time and may not come after it.
    """

    def __init__(
        self,
        model: Model,
        observations: ObservationSet,
        initial_state: Union[str, np.ndarray, list] = "from_data",
        t0: Optional[float] = None,
    ):
        self.model = model
        self.observations = observations
        self.t0 = observations.t_min if t0 is None else float(t0)
        if self.t0 > observations.t_min:
            raise ValueError(f"t0={self.t0:g} comes after the first observation at t={observations.t_min:g}")

        if isinstance(initial_state, str):
            if initial_state != "from_data":
                raise ValueError(f"Unknown initial_state mode '{initial_state}'. Use 'from_data' or a state vector.")
            if self.t0 != observations.t_min:
                raise ValueError("initial_state='from_data' requires t0 to equal the first observation time")
            y0 = np.array(observations.values[0], dtype=float)
        else:
            y0 = np.atleast_1d(np.array(initial_state, dtype=float))
            if y0.shape != (observations.state_dim,):
                raise ValueError(f"initial_state must have shape ({observations.state_dim},), got {y0.shape}")
            if not np.all(np.isfinite(y0)):
                raise ValueError("initial_state must be finite")
        y0.setflags(write=False)
        self.initial_state = y0

    def objective(self, horizon: float) -> Callable:
        """Pure ``theta -> (loss, trajectory)`` for one horizon, traceable by JAX on a JAX model."""
        subset = self.observations.restrict(horizon)
        xp = self.model.xp
        times = subset.times
        target = xp.asarray(subset.values)
        span = (self.t0, float(horizon))
        model = self.model
        y0 = self.initial_state

        def loss_fn(theta):
            traj = model.simulate(theta, y0, span, times)
            if traj.shape != target.shape:
                raise ValueError(f"Model returned trajectory of shape {traj.shape}, expected {target.shape}")
            residual = traj - target
            return xp.sum(residual ** 2), traj

        return loss_fn

    def evaluate(self, parameters, horizon: float) -> Tuple[float, np.ndarray]:
        loss, traj = self.objective(horizon)(self.model.as_parameters(parameters))
        loss = float(loss)
        traj = np.asarray(traj, dtype=float)
        if not (np.isfinite(loss) and np.all(np.isfinite(traj))):
            raise SimulationError(
                f"Non-finite trajectory at horizon {float(horizon):g} for parameters {np.asarray(parameters).tolist()}"
            )
        return loss, traj
