from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple


def logistic(y: Any, t: float, theta: Any, xp) -> Any:
    """Logistic growth dy/dt = r y (1 - y / K), theta = [r, K]."""
    r, K = theta[0], theta[1]
    return r * y * (1.0 - y / K)


def harmonic(y: Any, t: float, theta: Any, xp) -> Any:
    """Rotation in the phase plane at angular frequency omega, theta = [omega]."""
    omega = theta[0]
    return xp.stack([omega * y[1], -omega * y[0]])


def damped_oscillator(y: Any, t: float, theta: Any, xp) -> Any:
    """x'' + c x' + k x = 0 written as a first-order system, theta = [k, c]."""
    k, c = theta[0], theta[1]
    return xp.stack([y[1], -k * y[0] - c * y[1]])


def lotka_volterra(y: Any, t: float, theta: Any, xp) -> Any:
    """Predator-prey dynamics, theta = [alpha, beta, delta, gamma]."""
    alpha, beta, delta, gamma = theta[0], theta[1], theta[2], theta[3]
    prey, predator = y[0], y[1]
    return xp.stack([
        alpha * prey - beta * prey * predator,
        delta * prey * predator - gamma * predator,
    ])


@dataclass(frozen=True)
class Equation:
    rhs: Callable
    param_names: Tuple[str, ...]
    state_dim: int
    text: str


EQUATIONS: Dict[str, Equation] = {
    "logistic": Equation(logistic, ("r", "K"), 1, "dy/dt = r*y*(1 - y/K)"),
    "harmonic": Equation(harmonic, ("omega",), 2, "dx/dt = omega*v, dv/dt = -omega*x"),
    "damped_oscillator": Equation(damped_oscillator, ("k", "c"), 2, "dx/dt = v, dv/dt = -k*x - c*v"),
    "lotka_volterra": Equation(
        lotka_volterra,
        ("alpha", "beta", "delta", "gamma"),
        2,
        "dx/dt = alpha*x - beta*x*y, dy/dt = delta*x*y - gamma*y",
    ),
}


def get_equation(name: str) -> Equation:
    key = name.lower()
    if key not in EQUATIONS:
        raise ValueError(f"Unknown equation '{name}'. Available: {list(EQUATIONS.keys())}")
    return EQUATIONS[key]
