from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from typing import Callable, Dict

from .errors import SimulationError
from .types import IntegratorName

import jax.numpy as jnp
from jax import lax


IntegratorFn = Callable[..., object]


@dataclass
class IntegratorGroup:
    numpy: IntegratorFn
    jax: IntegratorFn | None = None


def _check_finite(y, t):
    if not np.all(np.isfinite(y)):
        raise SimulationError(f"Non-finite state at t={float(t):.6g}")


def _stack_jax(y0, ys):
    return jnp.concatenate([y0[None, ...], ys], axis=0)


def euler_numpy(rhs, y0, times, substeps=1):
    y = np.asarray(y0, dtype=float)
    out = np.zeros((len(times),) + y.shape, dtype=float)
    out[0] = y
    with np.errstate(over="ignore", invalid="ignore"):
        for i in range(1, len(times)):
            dt = (times[i] - times[i - 1]) / substeps
            t = times[i - 1]
            for _ in range(substeps):
                y = y + rhs(y, t) * dt
                t = t + dt
            _check_finite(y, times[i])
            out[i] = y
    return out


def euler_jax(rhs, y0, times, substeps=1):
    dt = (times[1:] - times[:-1]) / substeps
    t_prev = times[:-1]

    def step(carry, inputs):
        dt_i, t_i = inputs

        def body(_, val):
            y, t = val
            return (y + rhs(y, t) * dt_i).astype(y.dtype), t + dt_i

        y_new, _ = lax.fori_loop(0, substeps, body, (carry, t_i))
        return y_new, y_new

    _, ys = lax.scan(step, y0, (dt, t_prev))
    return _stack_jax(y0, ys)


def _rk4_step(rhs, y, t, dt):
    k1 = rhs(y, t)
    k2 = rhs(y + 0.5 * dt * k1, t + 0.5 * dt)
    k3 = rhs(y + 0.5 * dt * k2, t + 0.5 * dt)
    k4 = rhs(y + dt * k3, t + dt)
    return y + (dt / 6.0) * (k1 + 2 * k2 + 2 * k3 + k4)


def rk4_numpy(rhs, y0, times, substeps=1):
    y = np.asarray(y0, dtype=float)
    out = np.zeros((len(times),) + y.shape, dtype=float)
    out[0] = y
    with np.errstate(over="ignore", invalid="ignore"):
        for i in range(1, len(times)):
            dt = (times[i] - times[i - 1]) / substeps
            t = times[i - 1]
            for _ in range(substeps):
                y = _rk4_step(rhs, y, t, dt)
                t = t + dt
            _check_finite(y, times[i])
            out[i] = y
    return out


def rk4_jax(rhs, y0, times, substeps=1):
    dt = (times[1:] - times[:-1]) / substeps
    t_prev = times[:-1]

    def step(carry, inputs):
        dt_i, t_i = inputs

        def body(_, val):
            y, t = val
            return _rk4_step(rhs, y, t, dt_i).astype(y.dtype), t + dt_i

        y_new, _ = lax.fori_loop(0, substeps, body, (carry, t_i))
        return y_new, y_new

    _, ys = lax.scan(step, y0, (dt, t_prev))
    return _stack_jax(y0, ys)


def rk23_numpy(rhs, y0, times, substeps=1, rtol=1e-6, atol=1e-9, max_steps=100_000):
    """Bogacki-Shampine pair with step-size control; ``substeps`` sets the first trial step."""
    y = np.asarray(y0, dtype=float)
    t_curr = float(times[0])
    out = np.zeros((len(times),) + y.shape, dtype=float)
    out[0] = y
    dt = ((times[1] - times[0]) if len(times) > 1 else 1e-3) / substeps
    dt = dt if dt > 0 else 1e-3
    n_steps = 0
    with np.errstate(over="ignore", invalid="ignore"):
        for idx in range(1, len(times)):
            t_target = float(times[idx])
            while t_curr < t_target:
                n_steps += 1
                if n_steps > max_steps:
                    raise SimulationError(f"rk23 exceeded {max_steps} steps before t={t_target:.6g}")
                dt = min(dt, t_target - t_curr)
                k1 = rhs(y, t_curr)
                k2 = rhs(y + 0.5 * dt * k1, t_curr + 0.5 * dt)
                k3 = rhs(y + 0.75 * dt * k2, t_curr + 0.75 * dt)
                y3 = y + dt * (2.0 / 9.0 * k1 + 1.0 / 3.0 * k2 + 4.0 / 9.0 * k3)
                _check_finite(y3, t_curr + dt)
                k4 = rhs(y3, t_curr + dt)
                y2 = y + dt * (7.0 / 24.0 * k1 + 0.25 * k2 + 1.0 / 3.0 * k3 + 1.0 / 8.0 * k4)
                err = float(np.max(np.abs(y3 - y2)))
                tol = atol + rtol * max(float(np.max(np.abs(y))), float(np.max(np.abs(y3))))
                if err <= tol or dt <= 1e-12:
                    t_curr += dt
                    y = y3
                    fac = 0.9 * (tol / max(err, 1e-16)) ** (1.0 / 3.0)
                    dt = dt * min(2.0, max(0.2, fac))
                else:
                    fac = 0.9 * (tol / err) ** (1.0 / 3.0)
                    dt = dt * max(0.2, min(1.0, fac))
            out[idx] = y
    return out


def semi_implicit_numpy(rhs, y0, times, substeps=1, max_iter=8, tol=1e-10):
    y = np.asarray(y0, dtype=float)
    out = np.zeros((len(times),) + y.shape, dtype=float)
    out[0] = y
    with np.errstate(over="ignore", invalid="ignore"):
        for i in range(1, len(times)):
            dt = (times[i] - times[i - 1]) / substeps
            t = times[i - 1]
            for _ in range(substeps):
                t = t + dt
                y_prev = y
                y_new = y_prev
                for _ in range(max_iter):
                    next_val = y_prev + dt * rhs(y_new, t)
                    if np.max(np.abs(next_val - y_new)) < tol:
                        y_new = next_val
                        break
                    y_new = next_val
                y = y_new
            _check_finite(y, times[i])
            out[i] = y
    return out


def semi_implicit_jax(rhs, y0, times, substeps=1, max_iter=8):
    dt = (times[1:] - times[:-1]) / substeps
    t_prev = times[:-1]

    def step(carry, inputs):
        dt_i, t_i = inputs

        def sub(_, val):
            y_prev, t = val
            t_next = t + dt_i

            def fixed_point(_, y_guess):
                return (y_prev + dt_i * rhs(y_guess, t_next)).astype(y_prev.dtype)

            return lax.fori_loop(0, max_iter, fixed_point, y_prev), t_next

        y_new, _ = lax.fori_loop(0, substeps, sub, (carry, t_i))
        return y_new, y_new

    _, ys = lax.scan(step, y0, (dt, t_prev))
    return _stack_jax(y0, ys)


INTEGRATORS: Dict[IntegratorName, IntegratorGroup] = {
    "euler": IntegratorGroup(numpy=euler_numpy, jax=euler_jax),
    "rk4": IntegratorGroup(numpy=rk4_numpy, jax=rk4_jax),
    "rk23": IntegratorGroup(numpy=rk23_numpy),
    "semi_implicit": IntegratorGroup(numpy=semi_implicit_numpy, jax=semi_implicit_jax),
}


def get_integrator_group(name: IntegratorName) -> IntegratorGroup:
    key = name.lower()
    if key not in INTEGRATORS:
        raise ValueError(f"Unknown integrator '{name}'. Available: {list(INTEGRATORS.keys())}")
    return INTEGRATORS[key]
