"""Immutable time-ordered observations of a model's state trajectory."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .errors import EmptyRestrictionError


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class ObservationSet:
    """Sampled ground truth: ``times`` of shape (n,) and ``values`` of shape (n, state_dim).

    Times must be finite and strictly increasing. A 1-D ``values`` array is read
    as a single state dimension. Both arrays are copied and made read-only, so a
    set can be shared between stages without synchronisation.
    """

    times: np.ndarray
    values: np.ndarray

    def __post_init__(self):
        times = _frozen(self.times)
        values = np.array(self.values, dtype=float)
        if values.ndim == 1:
            values = values.reshape(-1, 1)
        values = _frozen(values)
        if times.ndim != 1 or times.size == 0:
            raise ValueError("times must be a non-empty 1-D array")
        if values.ndim != 2 or values.shape[0] != times.shape[0]:
            raise ValueError(f"values must have shape ({times.size}, state_dim), got {values.shape}")
        if not (np.all(np.isfinite(times)) and np.all(np.isfinite(values))):
            raise ValueError("observations must be finite")
        if np.any(np.diff(times) <= 0.0):
            raise ValueError("observation times must be strictly increasing")
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "values", values)

    @classmethod
    def from_arrays(cls, times, values) -> "ObservationSet":
        return cls(times=np.asarray(times), values=np.asarray(values))

    def __len__(self) -> int:
        return int(self.times.shape[0])

    def __eq__(self, other) -> bool:
        if not isinstance(other, ObservationSet):
            return NotImplemented
        return np.array_equal(self.times, other.times) and np.array_equal(self.values, other.values)

    __hash__ = None

    @property
    def t_min(self) -> float:
        return float(self.times[0])

    @property
    def t_max(self) -> float:
        return float(self.times[-1])

    @property
    def state_dim(self) -> int:
        return int(self.values.shape[1])

    def restrict(self, horizon: float) -> "ObservationSet":
        """Observations with time <= horizon, in their original order."""
        horizon = float(horizon)
        if not np.isfinite(horizon):
            raise ValueError(f"horizon must be finite, got {horizon}")
        stop = int(np.searchsorted(self.times, horizon, side="right"))
        if stop == 0:
            raise EmptyRestrictionError(horizon, self.t_min)
        if stop == len(self):
            return self
        return ObservationSet(self.times[:stop], self.values[:stop])

    def full(self) -> "ObservationSet":
        return self
