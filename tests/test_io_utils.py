import os

import numpy as np
import pytest
import yaml

from io_utils import (
    build_model,
    load_config,
    load_observations,
    resolve_initial_state,
    resolve_output_dir,
    save_observations,
    save_result,
)
from horizonfit.observations import ObservationSet
from horizonfit.parameters import initial_theta_from_cfg, pack_theta, unpack_theta
from horizonfit.types import FitResult

CONFIG = """
model:
  equation: harmonic
  backend: numpy
  integrator: rk23
  initial_state: [1.0, 0.0]
  t0: 0.0
data:
  base_dir: data
  file: obs.csv
fit:
  parameters:
    omega:
      init: 3.0
"""


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    return str(path)


def test_model_and_initial_state_from_config(config_path):
    cfg = load_config(config_path)
    model, equation = build_model(cfg)
    assert model.backend == "numpy"
    assert model.integrator_name == "rk23"
    assert equation.param_names == ("omega",)
    state, t0 = resolve_initial_state(cfg)
    np.testing.assert_array_equal(state, [1.0, 0.0])
    assert t0 == 0.0
    np.testing.assert_array_equal(initial_theta_from_cfg(cfg["fit"]["parameters"], equation.param_names), [3.0])


def test_observations_csv_relative_to_config(config_path, tmp_path):
    cfg = load_config(config_path)
    obs = ObservationSet(np.linspace(0.0, 2.0, 5), np.column_stack([np.arange(5.0), -np.arange(5.0)]))
    written = save_observations(str(tmp_path / "data" / "obs.csv"), obs)
    assert os.path.exists(written)
    assert load_observations(cfg, config_path) == obs


def test_save_result_yaml(tmp_path, config_path):
    out_dir = resolve_output_dir("outputs", config_path)
    assert os.path.isdir(out_dir)
    result = FitResult([1.0, 2.0], 0.5, 30.0, iterations=12, history=[1.0, 0.5])
    path = save_result(os.path.join(out_dir, "fit.yaml"), result, ["r", "K"], {"schedule": [10.0, 30.0]})
    with open(path) as f:
        payload = yaml.safe_load(f)
    assert payload["parameters"] == {"r": 1.0, "K": 2.0}
    assert payload["achieved_loss"] == 0.5
    assert payload["iterations"] == 12
    assert payload["status"] == "converged"
    assert payload["schedule"] == [10.0, 30.0]


def test_parameter_packing():
    theta = pack_theta({"K": 2.0, "r": 1.0}, ["r", "K"])
    np.testing.assert_array_equal(theta, [1.0, 2.0])
    assert unpack_theta(theta, ["r", "K"]) == {"r": 1.0, "K": 2.0}
    with pytest.raises(ValueError):
        pack_theta({"r": 1.0}, ["r", "K"])
    with pytest.raises(ValueError):
        unpack_theta([1.0], ["r", "K"])
