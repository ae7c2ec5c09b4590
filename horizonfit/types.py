from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np


class EstimationStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    CONVERGED = "converged"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FitResult:
    """Best iterate of a stage or of a whole run.

    ``status`` is CONVERGED for a finished stage or schedule and CANCELLED
    when a budget stopped the run before the last horizon.
    """

    parameters: np.ndarray
    achieved_loss: float
    horizon: float
    iterations: int = 0
    history: Tuple[float, ...] = ()
    status: EstimationStatus = EstimationStatus.CONVERGED

    def __post_init__(self):
        params = np.array(self.parameters, dtype=float)
        params.setflags(write=False)
        object.__setattr__(self, "parameters", params)
        object.__setattr__(self, "achieved_loss", float(self.achieved_loss))
        object.__setattr__(self, "horizon", float(self.horizon))
        object.__setattr__(self, "history", tuple(float(v) for v in self.history))
        object.__setattr__(self, "status", EstimationStatus(self.status))


@dataclass
class EstimationConfig:
    """Options recognised by ``estimate_parameters`` (the ``fit`` section of a YAML config)."""

    max_iterations_per_stage: int = 100
    step_size: float = 0.1
    optimizer: str = "adam"
    gradient: str = "autodiff"
    fd_eps: float = 1e-6
    clip_grad: Optional[float] = None
    tolerance: Optional[float] = None
    patience: int = 10
    max_total_iterations: Optional[int] = None
    timeout: Optional[float] = None
    extra: Dict = field(default_factory=dict, repr=False)

    def __post_init__(self):
        if self.max_iterations_per_stage < 1:
            raise ValueError("max_iterations_per_stage must be >= 1")
        if not self.step_size > 0.0:
            raise ValueError("step_size must be positive")
        if self.max_total_iterations is not None and self.max_total_iterations < 1:
            raise ValueError("max_total_iterations must be >= 1 when set")
        if self.patience < 1:
            raise ValueError("patience must be >= 1")

    @classmethod
    def from_dict(cls, cfg: Optional[Dict], strict: bool = True) -> "EstimationConfig":
        """Build from a plain dict; unknown keys raise unless ``strict`` is False."""
        if cfg is None:
            return cls()
        if isinstance(cfg, cls):
            return cfg
        known = {f.name for f in fields(cls) if f.name != "extra"}
        unknown = {k: v for k, v in cfg.items() if k not in known}
        if unknown and strict:
            raise ValueError(f"Unknown estimation config keys: {sorted(unknown)}. Available: {sorted(known)}")
        return cls(**{k: v for k, v in cfg.items() if k in known}, extra=unknown)


Backend = str  # 'numpy' or 'jax'
IntegratorName = str  # euler | rk4 | rk23 | semi_implicit
