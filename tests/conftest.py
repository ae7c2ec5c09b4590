import jax
import numpy as np
import pytest

jax.config.update("jax_enable_x64", True)

from horizonfit.errors import SimulationError  # noqa: E402
from horizonfit.models import Model, create_model  # noqa: E402
from horizonfit.simulation import simulate_observations  # noqa: E402

TRUE_LOGISTIC = [1.0, 2.0]
TRUE_OMEGA = [1.0]


class AlwaysFailingModel(Model):
    """Every simulation breaks, whatever the parameters."""

    backend = "jax"

    def __init__(self):
        self.calls = 0

    def simulate(self, parameters, initial_state, time_span, sample_times):
        self.calls += 1
        raise SimulationError("integrator blew up")


class HorizonLimitedModel(Model):
    """Delegates to ``inner`` but fails for any span ending after ``limit``."""

    def __init__(self, inner, limit):
        self.inner = inner
        self.limit = limit
        self.backend = inner.backend

    def simulate(self, parameters, initial_state, time_span, sample_times):
        if time_span[1] > self.limit:
            raise SimulationError(f"stiff beyond t={self.limit}")
        return self.inner.simulate(parameters, initial_state, time_span, sample_times)


@pytest.fixture
def obs_times():
    return np.linspace(0.0, 30.0, 100)


@pytest.fixture
def logistic_model():
    return create_model("logistic", backend="jax", integrator="rk4", substeps=4)


@pytest.fixture
def logistic_numpy_model():
    return create_model("logistic", backend="numpy", integrator="rk4", substeps=4)


@pytest.fixture
def logistic_observations(logistic_model, obs_times):
    return simulate_observations(logistic_model, TRUE_LOGISTIC, [0.1], obs_times)


@pytest.fixture
def noisy_logistic_observations(logistic_model, obs_times):
    return simulate_observations(logistic_model, TRUE_LOGISTIC, [0.1], obs_times, noise=0.005, seed=0)


@pytest.fixture
def harmonic_model():
    return create_model("harmonic", backend="jax", integrator="rk4", substeps=4)


@pytest.fixture
def harmonic_observations(harmonic_model, obs_times):
    return simulate_observations(harmonic_model, TRUE_OMEGA, [1.0, 0.0], obs_times)


@pytest.fixture
def failing_model():
    return AlwaysFailingModel()


@pytest.fixture
def limited_logistic_model(logistic_model):
    return HorizonLimitedModel(logistic_model, limit=15.0)
