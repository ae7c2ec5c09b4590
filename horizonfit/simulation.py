from __future__ import annotations

import numpy as np
from typing import Optional

from .models import Model
from .observations import ObservationSet


def simulate_observations(
    model: Model,
    parameters,
    initial_state,
    times,
    noise: float = 0.0,
    noise_kind: str = "uniform",
    seed: Optional[int] = None,
    t0: Optional[float] = None,
) -> ObservationSet:
    """Simulate ``model`` on ``times`` and return the trajectory as observations.

    ``noise`` is the half-width of uniform noise (bounded) or the standard
    deviation of gaussian noise, added elementwise to every state value.
    """
    times = np.asarray(times, dtype=float)
    t0 = float(times[0]) if t0 is None else float(t0)
    params = model.as_parameters(parameters)
    traj = np.asarray(model.simulate(params, initial_state, (t0, float(times[-1])), times), dtype=float)
    if noise > 0.0:
        rng = np.random.default_rng(seed)
        kind = noise_kind.lower()
        if kind == "uniform":
            traj = traj + rng.uniform(-noise, noise, size=traj.shape)
        elif kind == "gaussian":
            traj = traj + rng.normal(0.0, noise, size=traj.shape)
        else:
            raise ValueError(f"Unknown noise kind '{noise_kind}'. Available: ['uniform', 'gaussian']")
    return ObservationSet(times, traj)
