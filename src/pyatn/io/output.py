"""
HDF5 output files for completed simulations.

Each simulation is written to its own file, ``ATN.h5`` for simulation 0
and ``ATN_<id>.h5`` otherwise, with this layout::

    /parameters/simulation/step_size
    /parameters/simulation/stop_on_steady_state
    /parameters/system/use_system_carrying_capacity
    /parameters/system/system_carrying_capacity
    /parameters/node/{metabolic_rate, growth_rate, carrying_capacity}
    /parameters/link/{maximum_ingestion_rate, predator_interference,
                      functional_response_control,
                      relative_half_saturation_density,
                      half_saturation_density, assimilation_efficiency}
    /biomass                    float32, timesteps_simulated x nodes
    /extinction_timesteps
    /stop_event
    /node_config
    /node_config_biomass_scale
    /node_ids
    /food_web_json

Downstream analysis tools read these paths by name.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Sequence, Union

import h5py
import numpy as np

from pyatn.config import BATCH
from pyatn.core.foodweb import FoodWeb
from pyatn.core.params import LINK_PARAMETERS, NODE_PARAMETERS
from pyatn.core.simulation import SimulationResults
from pyatn.logger import get_logger

logger = get_logger(__name__)


@dataclass
class OutputFileData:
    """Everything written to a simulation's output file.

    Attributes
    ----------
    simulation_id : int
        Determines the file name
    results : SimulationResults
        Results of the completed simulation
    node_config : str
        Node config string the simulation was built from
    node_config_biomass_scale : float
        Biomass scale the node config was parsed with
    original_node_ids : sequence of int
        Original (food web) ID of each simulated node, in model order
    original_subweb : FoodWeb
        Subweb of the full food web, with original node IDs
    """
    simulation_id: int
    results: SimulationResults
    node_config: str
    node_config_biomass_scale: float
    original_node_ids: Sequence[int]
    original_subweb: FoodWeb


def output_filename(simulation_id: int) -> str:
    if simulation_id == 0:
        return f"{BATCH.output_prefix}{BATCH.output_extension}"
    return f"{BATCH.output_prefix}_{simulation_id}{BATCH.output_extension}"


class OutputFileWriter:
    """Writes simulation output files into one directory."""

    def __init__(self, output_directory: Union[str, Path]):
        self.output_directory = Path(output_directory)

    def output_file(self, simulation_id: int) -> Path:
        return self.output_directory / output_filename(simulation_id)

    def write(self, data: OutputFileData) -> Path:
        """Write an output file for one simulation and return its path."""
        path = self.output_file(data.simulation_id)
        results = data.results
        params = results.model_parameters

        with h5py.File(path, "w") as f:
            f["/parameters/simulation/step_size"] = float(results.simulation_parameters.step_size)
            f["/parameters/simulation/stop_on_steady_state"] = np.bool_(
                results.simulation_parameters.stop_on_steady_state
            )

            f["/parameters/system/use_system_carrying_capacity"] = np.bool_(
                params.use_system_carrying_capacity
            )
            f["/parameters/system/system_carrying_capacity"] = float(params.system_carrying_capacity)

            for name in NODE_PARAMETERS:
                f[f"/parameters/node/{name}"] = np.asarray(getattr(params, name), dtype=np.float64)
            for name in LINK_PARAMETERS:
                f[f"/parameters/link/{name}"] = np.asarray(getattr(params, name), dtype=np.float64)

            if results.biomass is not None:
                f.create_dataset(
                    "/biomass",
                    data=results.biomass[: results.timesteps_simulated].astype(np.float32),
                )

            f["/extinction_timesteps"] = np.asarray(results.extinction_timesteps, dtype=np.int32)
            f["/stop_event"] = results.stop_event.name
            f["/node_config"] = data.node_config
            f["/node_config_biomass_scale"] = float(data.node_config_biomass_scale)
            f["/node_ids"] = np.asarray(data.original_node_ids, dtype=np.int32)
            f["/food_web_json"] = data.original_subweb.to_json()

        logger.debug(f"Wrote {path}")
        return path


def read_output_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read every dataset of an output file.

    Returns
    -------
    dict
        Dataset path (without leading slash) -> value; strings are decoded,
        scalars are returned as Python scalars and arrays as numpy arrays
    """
    values = {}

    def visit(name, obj):
        if not isinstance(obj, h5py.Dataset):
            return
        if h5py.check_string_dtype(obj.dtype) is not None:
            values[name] = obj.asstr()[()]
        elif obj.shape == ():
            values[name] = obj[()].item()
        else:
            values[name] = obj[()]

    with h5py.File(path, "r") as f:
        f.visititems(visit)
    return values
