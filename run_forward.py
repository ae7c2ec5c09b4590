"""Forward simulation mode: simulate the configured model with fixed parameters and write observations.

This is separate from optimisation; no fitting is performed. The CSV written
here is the one ``run_curriculum.py`` reads (``data.base_dir``/``data.file``).
"""

import argparse
import os

import numpy as np

from io_utils import (
    build_model,
    configure_jax_platform,
    load_config,
    resolve_data_path,
    resolve_initial_state,
    resolve_output_dir,
    save_observations,
)
from horizonfit.parameters import pack_theta
from horizonfit.simulation import simulate_observations


def main() -> None:
    parser = argparse.ArgumentParser(description="Forward simulate an ODE model and save noisy observations")
    parser.add_argument('--config', type=str, default='config_example.yaml', help='Path to the YAML config file')
    parser.add_argument('--seed', type=int, help='Override forward.noise.seed')
    args = parser.parse_args()

    cfg = load_config(args.config)
    forward_cfg = cfg.get('forward', {})
    if not forward_cfg.get('enabled', False):
        print("Forward mode is disabled in config (forward.enabled = false). Enable it to run forward simulation.")
        return
    configure_jax_platform(cfg)

    model, equation = build_model(cfg)
    theta = pack_theta(forward_cfg['parameters'], equation.param_names)
    initial_state, t0 = resolve_initial_state(cfg)
    if isinstance(initial_state, str):
        raise ValueError("Forward simulation needs an explicit model.initial_state vector.")

    time_cfg = forward_cfg.get('time', {})
    times = np.linspace(
        float(time_cfg.get('t_min', 0.0)),
        float(time_cfg.get('t_max', 30.0)),
        int(time_cfg.get('n_points', 100)),
    )
    noise_cfg = forward_cfg.get('noise', {})
    seed = args.seed if args.seed is not None else noise_cfg.get('seed')
    observations = simulate_observations(
        model,
        theta,
        initial_state,
        times,
        noise=float(noise_cfg.get('scale', 0.0)),
        noise_kind=noise_cfg.get('kind', 'uniform'),
        seed=seed,
        t0=t0,
    )
    data_path = save_observations(resolve_data_path(cfg, args.config), observations)

    print("Forward simulation completed.\n")
    print(f"Model: {model!r}")
    print(f"Equation: {equation.text}")
    for name, value in zip(equation.param_names, theta):
        print(f"  {name}: {value:.6f}")
    print(f"  {len(observations)} observations on [{observations.t_min:g}, {observations.t_max:g}], "
          f"state dim {observations.state_dim}")
    print(f"Saved observations: {data_path}")

    if forward_cfg.get('plots', True):
        from plot_utils import plot_observations

        output_dir = resolve_output_dir(forward_cfg.get('output_dir', 'outputs_forward'), args.config)
        path = plot_observations(observations, output_dir)
        print(f"Saved plot: {os.path.relpath(path)}")


if __name__ == '__main__':
    main()
