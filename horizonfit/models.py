from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple, Union

import numpy as np
import jax.numpy as jnp

from .equations import Equation, get_equation
from .integrators import get_integrator_group
from .types import Backend, IntegratorName


class Model(ABC):
    """Contract for anything the estimator can fit.

    ``simulate`` must be deterministic and return one state row per requested
    sample time. Models on the ``"jax"`` backend have to be traceable by
    ``jax.grad``; integration failures are reported as ``SimulationError``.
    """

    backend: Backend = "jax"

    @property
    def xp(self):
        return jnp if self.backend == "jax" else np

    def as_parameters(self, values):
        """Convert a parameter vector to this backend's default float array."""
        if self.backend == "jax":
            return jnp.asarray(values, dtype=jnp.result_type(float))
        return np.asarray(values, dtype=float)

    @abstractmethod
    def simulate(self, parameters, initial_state, time_span: Tuple[float, float], sample_times):
        ...


class ODEModel(Model):
    """Backend-agnostic ODE model with pluggable integrators and right-hand sides."""

    def __init__(
        self,
        rhs_fn: Callable,
        backend: Backend = "jax",
        integrator: IntegratorName = "rk4",
        substeps: int = 1,
        name: Optional[str] = None,
    ):
        if substeps < 1:
            raise ValueError("substeps must be >= 1")
        self.rhs_fn = rhs_fn
        self.backend = backend.lower()
        if self.backend not in ("jax", "numpy"):
            raise ValueError(f"Unknown backend '{backend}'. Available: ['jax', 'numpy']")
        self.integrator_name = integrator
        self.integrators = get_integrator_group(integrator)
        self.substeps = int(substeps)
        self.name = name or getattr(rhs_fn, "__name__", "ode")

        if self.backend == "jax" and self.integrators.jax is None:
            raise ValueError(f"Integrator '{integrator}' has no JAX implementation; use the numpy backend.")

    def __repr__(self):
        return (
            f"ODEModel({self.name}, backend={self.backend!r}, "
            f"integrator={self.integrator_name!r}, substeps={self.substeps})"
        )

    def simulate(self, parameters, initial_state, time_span, sample_times):
        t0, t1 = float(time_span[0]), float(time_span[1])
        sample_np = np.asarray(sample_times, dtype=float)
        if sample_np.ndim != 1 or sample_np.size == 0:
            raise ValueError("sample_times must be a non-empty 1-D sequence")
        if sample_np[0] < t0 or sample_np[-1] > t1:
            raise ValueError(
                f"sample_times [{sample_np[0]:g}, {sample_np[-1]:g}] fall outside time_span [{t0:g}, {t1:g}]"
            )
        grid = np.concatenate([[t0], sample_np])
        xp = self.xp
        rhs = lambda y, t: self.rhs_fn(y, t, parameters, xp)
        if self.backend == "jax":
            dtype = jnp.result_type(float)
            y0 = jnp.atleast_1d(jnp.asarray(initial_state, dtype=dtype))
            traj = self.integrators.jax(rhs, y0, jnp.asarray(grid, dtype=dtype), substeps=self.substeps)
            return traj[1:]
        y0 = np.atleast_1d(np.asarray(initial_state, dtype=float))
        traj = self.integrators.numpy(rhs, y0, grid, substeps=self.substeps)
        return traj[1:]


def create_model(
    equation: Union[str, Equation, Callable],
    backend: Backend = "jax",
    integrator: IntegratorName = "rk4",
    substeps: int = 1,
) -> ODEModel:
    if isinstance(equation, str):
        equation = get_equation(equation)
    if isinstance(equation, Equation):
        return ODEModel(equation.rhs, backend=backend, integrator=integrator, substeps=substeps)
    return ODEModel(equation, backend=backend, integrator=integrator, substeps=substeps)
