"""
Node config string parser.

A node config describes one model instance on a single line: the node
count, then for each node its ID, biomass and parameter overrides::

    #,            number of nodes
    [#],          node ID
    #,            total biomass
    #,            per-unit biomass (ignored)
    #,            number of node parameters
    P=#,          node parameter: X (metabolic rate), R (growth rate)
                  or K (carrying capacity); repeated per the count above
    #,            number of link parameters (must be 0)

The node sections repeat once per node. Tokens are separated by any run
of commas and spaces. Biomass and carrying capacity are given in config
units and divided by the biomass scale to obtain model units.

Example
-------
>>> config = parse_node_config("2,[5],2000,1,1,K=3000,0,[7],100,1,1,X=0.2,0")
>>> config.node_ids
[5, 7]
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List

import numpy as np

from pyatn.core.constants import DEFAULT_NODE_CONFIG_BIOMASS_SCALE
from pyatn.core.errors import NodeConfigSyntaxError
from pyatn.core.params import ModelParameters

BRACKETED_INTEGER = re.compile(r"^\[(\d+)\]$")  # e.g. [2]
PARAMETER_ASSIGNMENT = re.compile(r"^([A-Z])=(.+)$")  # e.g. X=0.55
TOKEN_SEPARATOR = re.compile(r"[, ]+")

# Node parameter letter -> ModelParameters attribute
NODE_PARAMETER_NAMES = {
    "X": "metabolic_rate",
    "R": "growth_rate",
    "K": "carrying_capacity",
}


@dataclass
class NodeConfig:
    """Result of parsing a node config string.

    Attributes
    ----------
    node_ids : list of int
        Node IDs in the order they appear in the config
    initial_biomass : np.ndarray
        Biomass at t=0 of each node, in model units
    parameters : ModelParameters
        Default parameters with the configured overrides applied;
        element i corresponds to node_ids[i]
    """
    node_ids: List[int]
    initial_biomass: np.ndarray
    parameters: ModelParameters

    @property
    def node_count(self) -> int:
        return len(self.node_ids)


class _EndOfConfig(Exception):
    pass


class NodeConfigParser:
    """Parser for node config strings.

    Parameters
    ----------
    biomass_scale : float
        Factor by which config biomass and carrying capacity exceed model units
    """

    def __init__(self, biomass_scale: float = 1):
        self.biomass_scale = biomass_scale

    def parse(self, node_config: str) -> NodeConfig:
        """Parse a node config string.

        Raises
        ------
        NodeConfigSyntaxError
            If the string is malformed in any way
        """
        tokens = self._tokenize(node_config)
        try:
            result = self._parse_tokens(node_config, tokens)
        except _EndOfConfig:
            raise NodeConfigSyntaxError(
                node_config, "Unexpected end of node config string"
            ) from None
        except NodeConfigSyntaxError:
            raise
        except ValueError as e:
            raise NodeConfigSyntaxError(node_config, "Bad number format") from e
        if next(tokens, None) is not None:
            raise NodeConfigSyntaxError(
                node_config, "Expected end of string, found more tokens"
            )
        return result

    @staticmethod
    def _tokenize(node_config: str) -> Iterator[str]:
        return iter(t for t in TOKEN_SEPARATOR.split(node_config.strip()) if t)

    @staticmethod
    def _next(tokens: Iterator[str]) -> str:
        try:
            return next(tokens)
        except StopIteration:
            raise _EndOfConfig() from None

    def _parse_tokens(self, node_config: str, tokens: Iterator[str]) -> NodeConfig:
        node_count = int(self._next(tokens))
        if node_count < 0:
            raise NodeConfigSyntaxError(node_config, "Negative node count")

        node_ids = []
        initial_biomass = np.zeros(node_count)
        parameters = ModelParameters.with_defaults(node_count)

        for index in range(node_count):
            node_ids.append(self._parse_node_id(node_config, self._next(tokens)))
            initial_biomass[index] = float(self._next(tokens)) / self.biomass_scale
            self._next(tokens)  # per-unit biomass

            for _ in range(int(self._next(tokens))):
                name, value = self._parse_assignment(node_config, self._next(tokens))
                if name not in NODE_PARAMETER_NAMES:
                    raise NodeConfigSyntaxError(node_config, f"Invalid node parameter {name}")
                if name == "K":
                    value /= self.biomass_scale
                getattr(parameters, NODE_PARAMETER_NAMES[name])[index] = value

            if int(self._next(tokens)) != 0:
                raise NodeConfigSyntaxError(node_config, "Link parameters are not supported")

        return NodeConfig(node_ids, initial_biomass, parameters)

    @staticmethod
    def _parse_node_id(node_config: str, token: str) -> int:
        match = BRACKETED_INTEGER.match(token)
        if not match:
            raise NodeConfigSyntaxError(node_config, "Expected [#]")
        return int(match.group(1))

    @staticmethod
    def _parse_assignment(node_config: str, token: str):
        match = PARAMETER_ASSIGNMENT.match(token)
        if not match:
            raise NodeConfigSyntaxError(node_config, "Expected P=#")
        return match.group(1), float(match.group(2))


def parse_node_config(
    node_config: str, biomass_scale: float = DEFAULT_NODE_CONFIG_BIOMASS_SCALE
) -> NodeConfig:
    """Parse a node config string with the given biomass scale."""
    return NodeConfigParser(biomass_scale).parse(node_config)
