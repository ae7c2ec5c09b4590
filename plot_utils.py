"""Plotting helpers for curriculum fitting runs."""

from __future__ import annotations

import os
from typing import Optional, Sequence

import matplotlib

# Use non-interactive backend for CLI environments.
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from horizonfit.observations import ObservationSet  # noqa: E402
from horizonfit.types import FitResult  # noqa: E402


def plot_observations(observations: ObservationSet, output_dir: str, name: str = "observations") -> str:
    os.makedirs(output_dir, exist_ok=True)
    plt.figure(figsize=(7, 4))
    for dim in range(observations.state_dim):
        plt.plot(observations.times, observations.values[:, dim], "o", markersize=3, label=f"state {dim}")
    plt.xlabel("Time")
    plt.ylabel("State")
    plt.legend()
    plt.tight_layout()
    out_path = os.path.join(output_dir, f"{name}.png")
    plt.savefig(out_path, dpi=150)
    plt.close()
    return out_path


def plot_stage_fit(
    observations: ObservationSet,
    trajectory: np.ndarray,
    result: FitResult,
    stage_index: int,
    output_dir: str,
    traj_times: Optional[np.ndarray] = None,
) -> str:
    """Plot data vs model for one stage, marking the stage horizon.

    ``trajectory`` is sampled at ``traj_times`` (the observation times by
    default).
    """
    os.makedirs(output_dir, exist_ok=True)
    traj_times = observations.times if traj_times is None else traj_times
    trajectory = np.asarray(trajectory).reshape(len(traj_times), -1)

    plt.figure(figsize=(7, 4))
    for dim in range(observations.state_dim):
        line, = plt.plot(traj_times, trajectory[:, dim], "-", linewidth=1.6, label=f"model {dim}")
        plt.plot(observations.times, observations.values[:, dim], "o", markersize=3, alpha=0.6,
                 color=line.get_color(), label=f"data {dim}")
    plt.axvline(result.horizon, color="k", linestyle="--", linewidth=1.0, label="horizon")
    plt.xlabel("Time")
    plt.ylabel("State")
    plt.title(f"Stage {stage_index}: horizon {result.horizon:g}, loss {result.achieved_loss:.3e}")
    plt.legend(fontsize=7)
    plt.tight_layout()
    out_path = os.path.join(output_dir, f"stage_{stage_index:02d}_fit.png")
    plt.savefig(out_path, dpi=150)
    plt.close()
    return out_path


def plot_loss_histories(results: Sequence[FitResult], output_dir: str, name: str = "loss_history") -> str:
    """Loss per iteration for every stage, concatenated along the iteration axis."""
    os.makedirs(output_dir, exist_ok=True)
    plt.figure(figsize=(7, 4))
    offset = 0
    for result in results:
        hist = np.asarray(result.history, dtype=float)
        if hist.size == 0:
            continue
        x = np.arange(offset, offset + hist.size)
        plt.semilogy(x, np.maximum(hist, 1e-300), label=f"h={result.horizon:g}")
        offset += hist.size
    plt.xlabel("Iteration")
    plt.ylabel("Loss (sum of squares)")
    plt.legend()
    plt.tight_layout()
    out_path = os.path.join(output_dir, f"{name}.png")
    plt.savefig(out_path, dpi=150)
    plt.close()
    return out_path
