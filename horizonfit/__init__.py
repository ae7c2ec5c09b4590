"""Progressive-horizon parameter estimation for ODE models."""

from .types import EstimationConfig, EstimationStatus, FitResult
from .errors import (
    EstimationError,
    SimulationError,
    EmptyRestrictionError,
    InvalidScheduleError,
    StageFitError,
    CurriculumFailedError,
    EstimationCancelledError,
)
from .equations import get_equation
from .integrators import get_integrator_group
from .models import Model, ODEModel, create_model
from .observations import ObservationSet
from .parameters import pack_theta, unpack_theta
from .simulation import simulate_observations
from .losses import LossEvaluator
from .optimize import StageOptimizer, build_optimizer
from .curriculum import CurriculumDriver, build_schedule, estimate_parameters, validate_schedule
from .logging_config import setup_logger

__all__ = [
    "EstimationConfig",
    "EstimationStatus",
    "FitResult",
    "EstimationError",
    "SimulationError",
    "EmptyRestrictionError",
    "InvalidScheduleError",
    "StageFitError",
    "CurriculumFailedError",
    "EstimationCancelledError",
    "get_equation",
    "get_integrator_group",
    "Model",
    "ODEModel",
    "create_model",
    "ObservationSet",
    "pack_theta",
    "unpack_theta",
    "simulate_observations",
    "LossEvaluator",
    "StageOptimizer",
    "build_optimizer",
    "CurriculumDriver",
    "build_schedule",
    "estimate_parameters",
    "validate_schedule",
    "setup_logger",
]
