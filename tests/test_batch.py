"""
Tests for batch runs of node config files.
"""

import json

import numpy as np
import pytest

from pyatn.batch import build_parser, main, run_batch, run_batch_task
from pyatn.config import BATCH
from pyatn.core.params import SimulationParameters
from pyatn.io.output import read_output_file


@pytest.fixture
def simulation_parameters():
    return SimulationParameters(timesteps=50, stop_on_steady_state=True)


@pytest.fixture
def food_web_file(tmp_path, batch_food_web):
    path = tmp_path / "foodweb.json"
    path.write_text(batch_food_web.to_json())
    return path


class TestRunBatchTask:
    """Tests for a single batch simulation."""

    def test_writes_output(self, tmp_path, batch_food_web, batch_node_config, simulation_parameters):
        path = run_batch_task(
            batch_food_web, 123, simulation_parameters, batch_node_config, 1000, tmp_path
        )
        assert path == tmp_path / "ATN_123.h5"

        values = read_output_file(path)
        np.testing.assert_array_equal(values["node_ids"], [3, 55, 71, 74, 80])
        assert values["node_config"] == batch_node_config
        assert values["biomass"].shape == (50, 5)
        np.testing.assert_allclose(values["biomass"][0, 0], 4.11219, rtol=1e-6)
        assert values["parameters/node/carrying_capacity"][0] == pytest.approx(3.13436)
        assert values["parameters/node/metabolic_rate"][1] == pytest.approx(0.54461)

    def test_subweb_keeps_original_ids(self, tmp_path, batch_food_web, batch_node_config, simulation_parameters):
        path = run_batch_task(
            batch_food_web, 0, simulation_parameters, batch_node_config, 1000, tmp_path
        )
        assert path.name == "ATN.h5"
        web = json.loads(read_output_file(path)["food_web_json"])
        assert sorted(web["nodeAttributes"]) == ["3", "55", "71", "74", "80"]
        assert web["links"]["74"] == [80]

    def test_assimilation_efficiency_from_prey_type(self, tmp_path, batch_food_web, batch_node_config, simulation_parameters):
        path = run_batch_task(
            batch_food_web, 1, simulation_parameters, batch_node_config, 1000, tmp_path
        )
        efficiency = read_output_file(path)["parameters/link/assimilation_efficiency"]
        # Column 0 is the producer
        assert np.all(efficiency[:, 0] == 0.5)
        assert np.all(efficiency[:, 1:] == 0.8)


class TestRunBatch:
    """Tests for running several node configs."""

    def test_failing_line_does_not_stop_batch(self, tmp_path, batch_food_web, batch_node_config, simulation_parameters):
        lines = [batch_node_config, "1,[3],oops,1,0,0", "", batch_node_config]
        outcomes = run_batch(lines, batch_food_web, simulation_parameters, tmp_path / "out")

        assert [o.simulation_id for o in outcomes] == [0, 1, 3]
        assert [o.succeeded for o in outcomes] == [True, False, True]
        assert "Bad number format" in outcomes[1].error
        assert (tmp_path / "out" / "ATN.h5").exists()
        assert not (tmp_path / "out" / "ATN_1.h5").exists()
        assert (tmp_path / "out" / "ATN_3.h5").exists()

    def test_unknown_node(self, tmp_path, batch_food_web, simulation_parameters):
        outcomes = run_batch(["1,[42],1,1,0,0"], batch_food_web, simulation_parameters, tmp_path)
        assert not outcomes[0].succeeded

    def test_reads_file(self, tmp_path, batch_food_web, batch_node_config, simulation_parameters):
        config_file = tmp_path / "configs.txt"
        config_file.write_text(batch_node_config + "\n")
        outcomes = run_batch(config_file, batch_food_web, simulation_parameters, tmp_path)
        assert len(outcomes) == 1
        assert outcomes[0].output_file == tmp_path / "ATN.h5"


class TestCommandLine:
    """Tests for the pyatn-batch entry point."""

    def test_parser_defaults(self):
        args = build_parser().parse_args(["-n", "a.txt", "-f", "w.json", "-t", "10", "-o", "out"])
        assert args.node_config_biomass_scale == BATCH.biomass_scale
        assert args.step_interval == BATCH.step_size
        assert args.no_stop_on_steady_state is False
        assert args.workers == 1

    def test_missing_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-n", "a.txt"])

    def test_main(self, tmp_path, food_web_file, batch_node_config):
        config_file = tmp_path / "configs.txt"
        config_file.write_text(batch_node_config + "\n" + batch_node_config + "\n")
        out = tmp_path / "out"

        status = main([
            "-n", str(config_file), "-f", str(food_web_file),
            "-t", "30", "-i", "0.1", "-o", str(out), "-c",
        ])

        assert status == 0
        values = read_output_file(out / "ATN_1.h5")
        assert values["biomass"].shape == (30, 5)
        assert values["parameters/simulation/stop_on_steady_state"] is False

    def test_main_reports_failures(self, tmp_path, food_web_file):
        config_file = tmp_path / "configs.txt"
        config_file.write_text("not a config\n")
        status = main([
            "-n", str(config_file), "-f", str(food_web_file), "-t", "10", "-o", str(tmp_path),
        ])
        assert status == 1

    def test_missing_node_config_file(self, tmp_path, food_web_file):
        status = main([
            "-n", str(tmp_path / "missing.txt"), "-f", str(food_web_file),
            "-t", "10", "-o", str(tmp_path),
        ])
        assert status == 1
