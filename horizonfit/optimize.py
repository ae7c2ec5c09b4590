from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Tuple

import jax
import numpy as np
import optax

from .errors import SimulationError, StageFitError
from .losses import LossEvaluator
from .types import EstimationConfig, FitResult

logger = logging.getLogger(__name__)

OPTIMIZERS: Dict[str, Callable[[float], optax.GradientTransformation]] = {
    "adam": optax.adam,
    "sgd": optax.sgd,
    "rmsprop": optax.rmsprop,
}
GRADIENTS = ("autodiff", "finite_difference")


def build_optimizer(name: str, step_size: float, clip_grad: Optional[float] = None) -> optax.GradientTransformation:
    key = name.lower()
    if key not in OPTIMIZERS:
        raise ValueError(f"Unknown optimizer '{name}'. Available: {list(OPTIMIZERS.keys())}")
    opt = OPTIMIZERS[key](step_size)
    if clip_grad:
        return optax.chain(optax.clip_by_global_norm(clip_grad), opt)
    return opt


class StageOptimizer:
    """Bounded gradient refinement of the parameters for one fixed horizon.

    Every ``fit`` call starts from a fresh optimizer state, so nothing but the
    parameter vector carries over between horizons. The best iterate seen is
    returned, which is never worse than the starting point.

    A ``SimulationError`` at an iterate counts as a failed step: the next
    iterate moves halfway back toward the last one that evaluated cleanly.
    Only a stage in which no evaluation succeeded raises ``StageFitError``.

    When ``tolerance`` is set the stage also stops early once the best loss has
    improved by less than ``tolerance`` over ``patience`` consecutive
    evaluations.
    """

    def __init__(
        self,
        evaluator: LossEvaluator,
        step_size: float = 0.1,
        optimizer: str = "adam",
        gradient: str = "autodiff",
        fd_eps: float = 1e-6,
        clip_grad: Optional[float] = None,
        tolerance: Optional[float] = None,
        patience: int = 10,
    ):
        if gradient not in GRADIENTS:
            raise ValueError(f"Unknown gradient strategy '{gradient}'. Available: {list(GRADIENTS)}")
        if gradient == "autodiff" and evaluator.model.backend != "jax":
            raise ValueError("gradient='autodiff' needs a JAX-backend model; use 'finite_difference' for numpy models.")
        build_optimizer(optimizer, step_size, clip_grad)
        self.evaluator = evaluator
        self.step_size = step_size
        self.optimizer = optimizer
        self.gradient = gradient
        self.fd_eps = fd_eps
        self.clip_grad = clip_grad
        self.tolerance = tolerance
        self.patience = patience

    @classmethod
    def from_config(cls, evaluator: LossEvaluator, config: EstimationConfig) -> "StageOptimizer":
        return cls(
            evaluator,
            step_size=config.step_size,
            optimizer=config.optimizer,
            gradient=config.gradient,
            fd_eps=config.fd_eps,
            clip_grad=config.clip_grad,
            tolerance=config.tolerance,
            patience=config.patience,
        )

    def _value_and_grad(self, horizon: float) -> Callable[[np.ndarray], Tuple[float, np.ndarray]]:
        if self.gradient == "autodiff":
            as_parameters = self.evaluator.model.as_parameters
            value_and_grad = jax.jit(jax.value_and_grad(self.evaluator.objective(horizon), has_aux=True))

            def compute(theta):
                (loss, _), grad = value_and_grad(as_parameters(theta))
                return float(loss), np.asarray(grad, dtype=float)
        else:
            # Restrict once up front so a bad horizon fails before the loop.
            self.evaluator.observations.restrict(horizon)
            evaluate = self.evaluator.evaluate
            eps = self.fd_eps

            def compute(theta):
                loss, _ = evaluate(theta, horizon)
                grad = np.zeros_like(theta)
                for i in range(len(theta)):
                    dtheta = np.zeros_like(theta)
                    dtheta[i] = eps
                    f_plus, _ = evaluate(theta + dtheta, horizon)
                    f_minus, _ = evaluate(theta - dtheta, horizon)
                    grad[i] = (f_plus - f_minus) / (2.0 * eps)
                return loss, grad

        def checked(theta):
            loss, grad = compute(theta)
            if not np.isfinite(loss):
                raise SimulationError(f"Non-finite loss at horizon {horizon:g}")
            if not np.all(np.isfinite(grad)):
                raise SimulationError(f"Non-finite gradient at horizon {horizon:g}")
            return loss, grad

        return checked

    def fit(self, initial_parameters, horizon: float, max_iterations: int = 100) -> FitResult:
        theta0 = np.array(initial_parameters, dtype=float)
        if theta0.ndim != 1 or theta0.size == 0:
            raise ValueError(f"initial_parameters must be a non-empty 1-D vector, got shape {theta0.shape}")
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        horizon = float(horizon)

        step = self._value_and_grad(horizon)
        opt = build_optimizer(self.optimizer, self.step_size, self.clip_grad)
        opt_state = opt.init(theta0)

        theta = theta0
        last_good = None
        best_theta, best_loss = None, np.inf
        history = []
        last_error = None
        stalled = 0
        log_every = max(1, max_iterations // 10)
        it = 0
        for it in range(1, max_iterations + 1):
            try:
                loss, grad = step(theta)
            except SimulationError as exc:
                last_error = exc
                logger.debug("horizon=%g iter %d: simulation failed: %s", horizon, it, exc)
                if last_good is not None:
                    theta = last_good + 0.5 * (theta - last_good)
                continue

            history.append(loss)
            if self.tolerance is not None:
                stalled = 0 if best_loss - loss > self.tolerance else stalled + 1
            if loss < best_loss:
                best_loss = loss
                best_theta = theta
            if it % log_every == 0:
                logger.debug(
                    "horizon=%g iter %d/%d: loss=%.6e best=%.6e grad_norm=%.3e",
                    horizon, it, max_iterations, loss, best_loss, float(np.linalg.norm(grad)),
                )
            if self.tolerance is not None and stalled >= self.patience:
                logger.debug("horizon=%g: loss improvement below %g for %d iterations; stopping at iter %d",
                             horizon, self.tolerance, self.patience, it)
                break

            updates, opt_state = opt.update(grad, opt_state, theta)
            last_good = theta
            theta = np.asarray(optax.apply_updates(theta, updates), dtype=float)

        if best_theta is None:
            raise StageFitError(horizon, theta0, it) from last_error
        return FitResult(best_theta, best_loss, horizon, iterations=it, history=history)
