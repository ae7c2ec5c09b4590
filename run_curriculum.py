"""Command-line interface to fit ODE parameters with a progressive horizon schedule."""

import argparse
import logging
import os
import sys

from io_utils import (
    build_model,
    configure_jax_platform,
    load_config,
    load_observations,
    resolve_initial_state,
    resolve_output_dir,
    save_result,
)
from horizonfit.curriculum import build_schedule, estimate_parameters
from horizonfit.errors import CurriculumFailedError, EstimationError, SimulationError
from horizonfit.logging_config import setup_logger
from horizonfit.losses import LossEvaluator
from horizonfit.parameters import initial_theta_from_cfg, unpack_theta
from horizonfit.types import EstimationConfig, EstimationStatus


def _print_params(title, params, loss):
    print(title)
    for k, v in params.items():
        print(f"  {k}: {v:.6f}")
    print(f"  loss (sum of squares): {loss:.6e}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Progressive-horizon parameter estimation for ODE models")
    parser.add_argument('--config', type=str, default='config_example.yaml', help='Path to the YAML config file')
    parser.add_argument('--compare-single', action='store_true',
                        help='Also run one full-horizon fit from the same initial guess and compare losses')
    parser.add_argument('--verbose', action='store_true', help='Log per-iteration progress')
    args = parser.parse_args()

    cfg = load_config(args.config)
    configure_jax_platform(cfg)
    fit_cfg = cfg['fit']
    output_dir = resolve_output_dir(fit_cfg.get('output_dir', 'outputs'), args.config)
    log_file = fit_cfg.get('log_file')
    setup_logger(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=os.path.join(output_dir, log_file) if log_file else None,
    )

    model, equation = build_model(cfg)
    observations = load_observations(cfg, args.config)
    initial_state, t0 = resolve_initial_state(cfg)
    theta0 = initial_theta_from_cfg(fit_cfg['parameters'], equation.param_names)
    if fit_cfg.get('schedule'):
        schedule = [float(h) for h in fit_cfg['schedule']]
    else:
        try:
            schedule = build_schedule(observations, fit_cfg.get('schedule_fractions', [1.0]))
        except EstimationError as exc:
            print(f"Invalid schedule_fractions: {exc}")
            return 1
    config = EstimationConfig.from_dict(fit_cfg.get('estimation', {}))
    plots = fit_cfg.get('plots', True)

    evaluator = LossEvaluator(model, observations, initial_state=initial_state, t0=t0)
    stage_results = []

    def on_stage(index, result):
        stage_results.append(result)
        params = unpack_theta(result.parameters, equation.param_names)
        print(f"[stage {index}] horizon={result.horizon:g} iters={result.iterations} "
              f"loss={result.achieved_loss:.6e} params={params}")
        if plots:
            from plot_utils import plot_stage_fit

            try:
                _, traj = evaluator.evaluate(result.parameters, observations.t_max)
            except SimulationError as exc:
                print(f"Warning: could not simulate stage {index} over the full span: {exc}")
                return
            plot_stage_fit(observations, traj, result, index, output_dir)

    print(f"Model: {model!r}")
    print(f"Equation: {equation.text}")
    print(f"Horizon schedule: {schedule}")
    try:
        result = estimate_parameters(
            model, observations, theta0, schedule, config,
            initial_state=initial_state, t0=t0, callback=on_stage,
        )
    except CurriculumFailedError as exc:
        print(f"Curriculum failed at stage {exc.stage_index} (horizon {exc.horizon:g}): {exc.__cause__}")
        return 1
    except EstimationError as exc:
        print(f"Estimation failed: {exc}")
        return 1

    best = unpack_theta(result.parameters, equation.param_names)
    if result.status is EstimationStatus.CANCELLED:
        print(f"\nBudget exhausted: stopped after horizon {result.horizon:g} of {schedule[-1]:g}.")
    _print_params(f"\nBest parameters found (curriculum, {result.status.value}):", best, result.achieved_loss)
    summary = {"schedule": schedule, "stage_losses": [r.achieved_loss for r in stage_results]}

    if args.compare_single:
        try:
            single = estimate_parameters(
                model, observations, theta0, [observations.t_max], config,
                initial_state=initial_state, t0=t0,
            )
        except EstimationError as exc:
            print(f"\nSingle full-horizon fit failed: {exc.__cause__ or exc}")
        else:
            _print_params("\nSingle full-horizon fit:", unpack_theta(single.parameters, equation.param_names),
                          single.achieved_loss)
            summary["single_horizon_loss"] = single.achieved_loss
            summary["single_horizon_parameters"] = unpack_theta(single.parameters, equation.param_names)

    result_path = save_result(os.path.join(output_dir, "fit_result.yaml"), result, equation.param_names, summary)
    print(f"\nSaved result: {result_path}")
    if plots and stage_results:
        from plot_utils import plot_loss_histories

        print(f"Saved loss history: {plot_loss_histories(stage_results, output_dir)}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
