"""
Batch simulation of node configs.

Runs one simulation per line of a node config file against subwebs of a
single food web, writing one HDF5 output file per simulation.

Usage:
    pyatn-batch -n node_configs.txt -f foodweb.json -t 10000 -o output/

Or with parallel workers and a log file:
    pyatn-batch -n node_configs.txt -f foodweb.json -t 10000 -o output/ -w 4 --log-file batch.log
"""

from __future__ import annotations

import argparse
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from pyatn.config import BATCH
from pyatn.core.equations import ModelEquations
from pyatn.core.errors import ATNError
from pyatn.core.foodweb import FoodWeb
from pyatn.core.params import SimulationParameters
from pyatn.core.simulation import Simulation
from pyatn.io.node_config import NodeConfigParser
from pyatn.io.output import OutputFileData, OutputFileWriter
from pyatn.logger import add_file_handler, get_logger

logger = get_logger(__name__)


@dataclass
class BatchTaskOutcome:
    """Outcome of one line of a batch."""
    simulation_id: int
    output_file: Optional[Path] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def run_batch_task(
    full_food_web: FoodWeb,
    simulation_id: int,
    simulation_parameters: SimulationParameters,
    node_config: str,
    node_config_biomass_scale: float,
    output_directory: Union[str, Path],
) -> Path:
    """Run a single simulation from a node config string and save its results.

    The node config selects a subweb of ``full_food_web``; the subweb is
    renumbered in config order so that model index i is the i-th configured
    node.

    Returns
    -------
    Path
        The output file written
    """
    config = NodeConfigParser(node_config_biomass_scale).parse(node_config)

    subweb = full_food_web.subweb(config.node_ids)
    normalized_subweb = subweb.normalized_copy(config.node_ids)
    config.parameters.apply_food_web_defaults(normalized_subweb)

    equations = ModelEquations(normalized_subweb, config.parameters)
    simulation = Simulation(simulation_parameters, equations, config.initial_biomass)
    results = simulation.run()

    data = OutputFileData(
        simulation_id=simulation_id,
        results=results,
        node_config=node_config,
        node_config_biomass_scale=node_config_biomass_scale,
        original_node_ids=config.node_ids,
        original_subweb=subweb,
    )
    return OutputFileWriter(output_directory).write(data)


def _run_line(args) -> BatchTaskOutcome:
    simulation_id = args[1]
    logger.info(f"Running simulation {simulation_id}")
    try:
        path = run_batch_task(*args)
    except (ATNError, ValueError, OSError) as e:
        logger.error(f"Simulation {simulation_id} failed: {e}")
        return BatchTaskOutcome(simulation_id, error=str(e))
    return BatchTaskOutcome(simulation_id, output_file=path)


def run_batch(
    node_configs: Union[str, Path, Sequence[str]],
    food_web: FoodWeb,
    simulation_parameters: SimulationParameters,
    output_directory: Union[str, Path],
    node_config_biomass_scale: float = BATCH.biomass_scale,
    workers: int = 1,
) -> List[BatchTaskOutcome]:
    """Run one simulation per node config line.

    Parameters
    ----------
    node_configs : str, Path or sequence of str
        Node config file, or the node config lines themselves. The simulation
        ID of each line is its index; blank lines are skipped.
    food_web : FoodWeb
        Full food web containing every configured node
    simulation_parameters : SimulationParameters
        Parameters shared by all simulations
    output_directory : str or Path
        Directory for the output files (created if missing)
    node_config_biomass_scale : float
        Biomass scale of the node configs
    workers : int
        Number of worker processes; 1 runs the lines sequentially

    Returns
    -------
    list of BatchTaskOutcome
        One per non-blank line, in line order. A failing line does not
        stop the others.
    """
    if isinstance(node_configs, (str, Path)):
        with open(node_configs, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    else:
        lines = list(node_configs)

    output_directory = Path(output_directory)
    output_directory.mkdir(parents=True, exist_ok=True)

    tasks = [
        (
            food_web,
            simulation_id,
            simulation_parameters,
            line.strip(),
            node_config_biomass_scale,
            output_directory,
        )
        for simulation_id, line in enumerate(lines)
        if line.strip()
    ]

    if workers > 1:
        with ProcessPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(_run_line, tasks))
    else:
        outcomes = [_run_line(task) for task in tasks]

    failed = sum(not outcome.succeeded for outcome in outcomes)
    logger.info(f"Batch finished: {len(outcomes) - failed} succeeded, {failed} failed")
    return outcomes


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyatn-batch",
        description="Run ATN simulations for each line of a node config file",
    )
    parser.add_argument("-n", "--node-config-file", required=True, type=Path,
                        help="Node config file, one simulation per line")
    parser.add_argument("-f", "--food-web", required=True, type=Path,
                        help="Food web JSON file containing every configured node")
    parser.add_argument("-b", "--node-config-biomass-scale", type=float,
                        default=BATCH.biomass_scale, help="Node config biomass scale")
    parser.add_argument("-t", "--timesteps", required=True, type=int,
                        help="Time steps to run simulations")
    parser.add_argument("-i", "--step-interval", type=float, default=BATCH.step_size,
                        help="Time step duration")
    parser.add_argument("-o", "--output-dir", required=True, type=Path,
                        help="Output directory")
    parser.add_argument("-c", "--no-stop-on-steady-state", action="store_true",
                        help="Do not stop when a steady state is detected")
    parser.add_argument("-w", "--workers", type=int, default=1,
                        help="Number of worker processes")
    parser.add_argument("--log-file", type=Path, help="Also write the log to this file")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.log_file:
        add_file_handler(args.log_file)

    if not args.node_config_file.is_file():
        logger.error(f"Input file {args.node_config_file} not found")
        return 1

    food_web = FoodWeb.from_json(args.food_web)
    parameters = SimulationParameters(
        timesteps=args.timesteps,
        step_size=args.step_interval,
        stop_on_steady_state=not args.no_stop_on_steady_state,
    )
    outcomes = run_batch(
        args.node_config_file,
        food_web,
        parameters,
        args.output_dir,
        node_config_biomass_scale=args.node_config_biomass_scale,
        workers=args.workers,
    )
    return 0 if all(outcome.succeeded for outcome in outcomes) else 1


if __name__ == "__main__":
    raise SystemExit(main())
