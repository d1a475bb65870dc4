"""
I/O module for PyATN.

Contains the node config parser and the HDF5 output file writer.
"""

from pyatn.io.node_config import (
    NodeConfig,
    NodeConfigParser,
    parse_node_config,
)
from pyatn.io.output import (
    OutputFileData,
    OutputFileWriter,
    output_filename,
    read_output_file,
)

__all__ = [
    # Node config
    "NodeConfig",
    "NodeConfigParser",
    "parse_node_config",
    # Output files
    "OutputFileData",
    "OutputFileWriter",
    "output_filename",
    "read_output_file",
]
