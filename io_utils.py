"""Shared helpers for CLI scripts (config, data and result IO).

These utilities keep the command-line entrypoints small and ensure the same
behaviour between forward simulation and curriculum fitting runs.
"""

from __future__ import annotations

import os
from typing import Dict, Optional, Tuple, Union

import numpy as np
import yaml

from horizonfit.equations import Equation, get_equation
from horizonfit.models import ODEModel, create_model
from horizonfit.observations import ObservationSet
from horizonfit.parameters import unpack_theta
from horizonfit.types import FitResult


def load_config(path: str) -> Dict:
    """Load a YAML configuration file."""
    with open(path, "r") as f:
        return yaml.safe_load(f)


def _resolve_relative(path: str, config_path: str) -> str:
    if not os.path.isabs(path):
        config_dir = os.path.dirname(os.path.abspath(config_path))
        path = os.path.join(config_dir, path)
    return path


def resolve_data_path(cfg: Dict, config_path: str) -> str:
    """Resolve the observation CSV path relative to the config file."""
    data_cfg = cfg["data"]
    return _resolve_relative(os.path.join(data_cfg.get("base_dir", "."), data_cfg["file"]), config_path)


def resolve_output_dir(out_dir: str, config_path: str) -> str:
    """Resolve output directory relative to the config file and create it."""
    out_dir = _resolve_relative(out_dir, config_path)
    os.makedirs(out_dir, exist_ok=True)
    return out_dir


def configure_jax_platform(cfg: Dict) -> None:
    """Apply fit.jax_platform (cpu/gpu) and fit.jax_enable_x64 before any JAX computation."""
    import jax

    fit_cfg = cfg.get("fit", {})
    platform = fit_cfg.get("jax_platform")
    if platform:
        if platform == "gpu":
            try:
                has_gpu = bool(jax.devices("gpu"))
            except RuntimeError:
                has_gpu = False
            platform = "gpu" if has_gpu else "cpu"
        os.environ.setdefault("JAX_PLATFORM_NAME", platform)
        jax.config.update("jax_platform_name", platform)
    enable_x64 = fit_cfg.get("jax_enable_x64")
    if enable_x64 is not None:
        os.environ.setdefault("JAX_ENABLE_X64", "1" if enable_x64 else "0")
        jax.config.update("jax_enable_x64", bool(enable_x64))


def build_model(cfg: Dict) -> Tuple[ODEModel, Equation]:
    """Create the configured ODE model and return it with its equation metadata."""
    model_cfg = cfg["model"]
    equation = get_equation(model_cfg["equation"])
    model = create_model(
        equation,
        backend=model_cfg.get("backend", "jax"),
        integrator=model_cfg.get("integrator", "rk4"),
        substeps=int(model_cfg.get("substeps", 1)),
    )
    return model, equation


def resolve_initial_state(cfg: Dict) -> Tuple[Union[str, np.ndarray], Optional[float]]:
    """Initial state ('from_data' or a vector) and t0 from the model section."""
    model_cfg = cfg["model"]
    state = model_cfg.get("initial_state", "from_data")
    if not isinstance(state, str):
        state = np.atleast_1d(np.asarray(state, dtype=float))
    t0 = model_cfg.get("t0")
    return state, (None if t0 is None else float(t0))


def load_observations(cfg: Dict, config_path: str) -> ObservationSet:
    """Load the observation CSV defined in the config.

    Expects a ``time`` column followed by one column per state dimension; a
    header line starting with ``#`` is skipped.
    """
    path = resolve_data_path(cfg, config_path)
    arr = np.loadtxt(path, delimiter=",", ndmin=2)
    if arr.shape[1] < 2:
        raise ValueError(f"Expected a time column plus at least one state column in '{path}', got shape {arr.shape}.")
    return ObservationSet(arr[:, 0], arr[:, 1:])


def save_observations(path: str, observations: ObservationSet) -> str:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    header = ",".join(["time"] + [f"state_{i}" for i in range(observations.state_dim)])
    table = np.column_stack([observations.times, observations.values])
    np.savetxt(path, table, delimiter=",", header=header)
    return path


def save_result(path: str, result: FitResult, param_names, extra: Optional[Dict] = None) -> str:
    """Write a fit result as YAML (parameters by name, loss, horizon, iterations, status)."""
    payload = {
        "parameters": unpack_theta(result.parameters, param_names),
        "achieved_loss": result.achieved_loss,
        "horizon": result.horizon,
        "iterations": result.iterations,
        "status": result.status.value,
    }
    if extra:
        payload.update(extra)
    with open(path, "w") as f:
        yaml.safe_dump(payload, f, sort_keys=False)
    return path
