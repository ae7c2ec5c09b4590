from __future__ import annotations

import numpy as np
from typing import Dict, Sequence


def pack_theta(params: Dict[str, float], param_names: Sequence[str]) -> np.ndarray:
    missing = [name for name in param_names if name not in params]
    if missing:
        raise ValueError(f"Missing values for parameters {missing}")
    return np.array([params[name] for name in param_names], dtype=float)


def unpack_theta(theta, param_names: Sequence[str]) -> Dict[str, float]:
    theta = np.asarray(theta, dtype=float)
    if theta.shape != (len(param_names),):
        raise ValueError(f"Expected {len(param_names)} parameters {list(param_names)}, got shape {theta.shape}")
    return {name: float(theta[i]) for i, name in enumerate(param_names)}


def initial_theta_from_cfg(params_cfg: Dict, param_names: Sequence[str]) -> np.ndarray:
    """Initial guess from a ``{name: {init: value}}`` (or ``{name: value}``) mapping."""
    values = {}
    for name in param_names:
        entry = params_cfg.get(name)
        if isinstance(entry, dict):
            entry = entry.get('init')
        if entry is not None:
            values[name] = entry
    return pack_theta(values, param_names)
