import numpy as np
import pytest

from horizonfit.curriculum import CurriculumDriver, build_schedule, estimate_parameters, validate_schedule
from horizonfit.errors import (
    CurriculumFailedError,
    EmptyRestrictionError,
    EstimationCancelledError,
    InvalidScheduleError,
    StageFitError,
)
from horizonfit.losses import LossEvaluator
from horizonfit.simulation import simulate_observations
from horizonfit.types import EstimationConfig, EstimationStatus

from conftest import TRUE_LOGISTIC


@pytest.mark.parametrize("schedule", [[], [10.0, 10.0], [20.0, 10.0], [10.0, 31.0], [5.0, np.nan]])
def test_invalid_schedules(schedule, logistic_observations):
    with pytest.raises(InvalidScheduleError):
        validate_schedule(schedule, logistic_observations)


def test_schedule_before_first_observation(logistic_model, obs_times):
    late = simulate_observations(logistic_model, TRUE_LOGISTIC, [0.1], obs_times + 5.0)
    with pytest.raises(EmptyRestrictionError):
        validate_schedule([2.0, 10.0], late)


def test_build_schedule_appends_full_horizon(logistic_observations):
    assert build_schedule(logistic_observations, [0.25, 0.5]) == pytest.approx([7.5, 15.0, 30.0])
    assert build_schedule(logistic_observations, [1.0]) == [30.0]
    with pytest.raises(InvalidScheduleError):
        build_schedule(logistic_observations, [0.0, 1.0])


def test_curriculum_recovers_logistic_parameters(logistic_model, noisy_logistic_observations):
    driver = CurriculumDriver()
    result = driver.estimate([5.0, 5.0], [10.0, 20.0, 30.0], noisy_logistic_observations, logistic_model,
                             initial_state=[0.1], t0=0.0)
    assert driver.status is EstimationStatus.CONVERGED
    assert driver.stage_index == 2
    assert result.horizon == 30.0
    assert result.status is EstimationStatus.CONVERGED
    np.testing.assert_allclose(result.parameters, TRUE_LOGISTIC, atol=0.01)


def test_single_horizon_schedule_is_plain_fit(logistic_model, noisy_logistic_observations):
    result = estimate_parameters(logistic_model, noisy_logistic_observations, [1.5, 2.5], [30.0],
                                 {"max_iterations_per_stage": 20}, initial_state=[0.1])
    assert result.horizon == 30.0
    assert result.iterations == 20


def test_curriculum_beats_single_shot_on_oscillator(harmonic_model, harmonic_observations):
    config = {"max_iterations_per_stage": 300, "step_size": 0.02}
    curriculum = estimate_parameters(harmonic_model, harmonic_observations, [3.0], [1.0, 3.0, 10.0, 30.0], config)
    single = estimate_parameters(harmonic_model, harmonic_observations, [3.0], [30.0], config)
    assert curriculum.achieved_loss < single.achieved_loss
    assert curriculum.achieved_loss < 0.1 * single.achieved_loss
    assert abs(curriculum.parameters[0] - 1.0) < 0.05


def test_stage_failure_halts_curriculum(failing_model, logistic_observations):
    driver = CurriculumDriver({"max_iterations_per_stage": 5})
    with pytest.raises(CurriculumFailedError) as excinfo:
        driver.estimate(TRUE_LOGISTIC, [10.0, 30.0], logistic_observations, failing_model, initial_state=[0.1])
    assert excinfo.value.stage_index == 0
    assert excinfo.value.horizon == 10.0
    assert excinfo.value.last_result is None
    assert isinstance(excinfo.value.__cause__, StageFitError)
    assert driver.status is EstimationStatus.FAILED
    assert failing_model.calls >= 5


def test_later_stage_failure_reports_previous_result(limited_logistic_model, logistic_observations):
    driver = CurriculumDriver({"max_iterations_per_stage": 10})
    with pytest.raises(CurriculumFailedError) as excinfo:
        driver.estimate([1.5, 2.5], [10.0, 20.0, 30.0], logistic_observations, limited_logistic_model,
                        initial_state=[0.1])
    assert excinfo.value.stage_index == 1
    assert excinfo.value.horizon == 20.0
    assert excinfo.value.last_result.horizon == 10.0
    assert driver.stage_index == 1
    assert driver.status is EstimationStatus.FAILED


def test_iteration_budget_cancels_with_last_result(logistic_model, logistic_observations):
    driver = CurriculumDriver({"max_iterations_per_stage": 100, "max_total_iterations": 150})
    result = driver.estimate([1.5, 2.5], [10.0, 20.0, 30.0], logistic_observations, logistic_model,
                             initial_state=[0.1])
    assert driver.status is EstimationStatus.CANCELLED
    assert result.horizon == 20.0
    assert result.iterations == 50
    assert result.status is EstimationStatus.CANCELLED
    assert driver.result is result


def test_budget_cancellation_is_visible_on_the_result(logistic_model, logistic_observations):
    result = estimate_parameters(logistic_model, logistic_observations, [1.5, 2.5], [10.0, 20.0, 30.0],
                                 {"max_iterations_per_stage": 100, "max_total_iterations": 150},
                                 initial_state=[0.1])
    assert result.status is EstimationStatus.CANCELLED
    assert result.horizon == 20.0

    full = estimate_parameters(logistic_model, logistic_observations, [1.5, 2.5], [10.0, 30.0],
                               {"max_iterations_per_stage": 10}, initial_state=[0.1])
    assert full.status is EstimationStatus.CONVERGED


def test_timeout_before_first_stage(logistic_model, logistic_observations):
    driver = CurriculumDriver({"timeout": 0.0})
    with pytest.raises(EstimationCancelledError):
        driver.estimate([1.5, 2.5], [10.0, 30.0], logistic_observations, logistic_model, initial_state=[0.1])
    assert driver.status is EstimationStatus.CANCELLED


def test_callback_runs_once_per_stage(logistic_model, logistic_observations):
    seen = []
    estimate_parameters(logistic_model, logistic_observations, [1.5, 2.5], [5.0, 15.0, 30.0],
                        {"max_iterations_per_stage": 5}, initial_state=[0.1],
                        callback=lambda index, result: seen.append((index, result.horizon)))
    assert seen == [(0, 5.0), (1, 15.0), (2, 30.0)]


def test_stages_are_warm_started(logistic_model, logistic_observations):
    stages = []
    estimate_parameters(logistic_model, logistic_observations, [1.5, 2.5], [10.0, 30.0],
                        {"max_iterations_per_stage": 15}, initial_state=[0.1],
                        callback=lambda index, result: stages.append(result))
    # the second stage starts where the first ended, so it can only improve on that point
    evaluator = LossEvaluator(logistic_model, logistic_observations, initial_state=[0.1])
    carried, _ = evaluator.evaluate(stages[0].parameters, 30.0)
    assert stages[1].history[0] == pytest.approx(carried, rel=1e-9)
    assert stages[1].achieved_loss <= carried * (1 + 1e-9)


def test_bad_inputs_rejected(logistic_model, logistic_observations):
    with pytest.raises(ValueError, match="Unknown estimation config keys"):
        CurriculumDriver({"learning_rate": 0.1})
    with pytest.raises(ValueError):
        estimate_parameters(logistic_model, logistic_observations, [np.nan, 1.0], [30.0])
    with pytest.raises(ValueError):
        estimate_parameters(logistic_model, logistic_observations, [], [30.0])
    config = EstimationConfig.from_dict({"step_size": 0.2, "learning_rate": 0.1}, strict=False)
    assert config.step_size == 0.2
    assert config.extra == {"learning_rate": 0.1}
