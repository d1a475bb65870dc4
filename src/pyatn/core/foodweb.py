"""
Food web structure for ATN simulations.

A food web is a directed graph whose links run from prey node to predator
node, the direction of energy flow. Each node carries a node type
(producer or consumer), which is the only node attribute the model
equations need.

The graph is held in a networkx DiGraph. Node IDs are integers; before the
model equations can index dense parameter arrays by node ID, the web must be
normalized so that its IDs are exactly 0..N-1 (see ``normalized_copy``).
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Set, TextIO, Union

import networkx as nx

from pyatn.core.errors import (
    FoodWebDuplicateNodeError,
    FoodWebNodeAbsentError,
)


class NodeType(Enum):
    """Type of a food web node."""
    PRODUCER = "PRODUCER"
    CONSUMER = "CONSUMER"


class FoodWeb:
    """Directed prey -> predator graph with typed nodes.

    Examples
    --------
    >>> web = FoodWeb()
    >>> web.add_producer_node(0)
    >>> web.add_consumer_node(1)
    >>> web.add_link(0, 1)
    >>> web.predators_of(0)
    {1}
    """

    def __init__(self):
        self._graph = nx.DiGraph()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_node(self, node_id: int, node_type: NodeType = NodeType.CONSUMER) -> None:
        """Add a node; raises FoodWebDuplicateNodeError if it already exists."""
        if self.contains_node(node_id):
            raise FoodWebDuplicateNodeError(node_id)
        self._graph.add_node(int(node_id), node_type=NodeType(node_type))

    def add_producer_node(self, node_id: int) -> None:
        self.add_node(node_id, NodeType.PRODUCER)

    def add_consumer_node(self, node_id: int) -> None:
        self.add_node(node_id, NodeType.CONSUMER)

    def add_link(self, prey_node_id: int, predator_node_id: int) -> None:
        """Add a link from prey to predator. Both nodes must already exist."""
        self._require(prey_node_id)
        self._require(predator_node_id)
        self._graph.add_edge(int(prey_node_id), int(predator_node_id))

    def set_node_type(self, node_id: int, node_type: NodeType) -> None:
        self._require(node_id)
        self._graph.nodes[node_id]["node_type"] = NodeType(node_type)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    def link_count(self) -> int:
        return self._graph.number_of_edges()

    def nodes(self) -> Set[int]:
        return set(self._graph.nodes)

    def contains_node(self, node_id: int) -> bool:
        return self._graph.has_node(node_id)

    def contains_link(self, prey_node_id: int, predator_node_id: int) -> bool:
        return self._graph.has_edge(prey_node_id, predator_node_id)

    def node_type(self, node_id: int) -> NodeType:
        self._require(node_id)
        return self._graph.nodes[node_id]["node_type"]

    def predators_of(self, prey_node_id: int) -> Set[int]:
        """Node IDs of out-links (predators) of the given node."""
        self._require(prey_node_id)
        return set(self._graph.successors(prey_node_id))

    def prey_of(self, predator_node_id: int) -> Set[int]:
        """Node IDs of in-links (prey) of the given node."""
        self._require(predator_node_id)
        return set(self._graph.predecessors(predator_node_id))

    def nodes_of_type(self, node_type: NodeType) -> List[int]:
        """Sorted node IDs having the given type."""
        return sorted(
            n for n, t in self._graph.nodes(data="node_type") if t == node_type
        )

    def ids_are_normalized(self) -> bool:
        """True if node IDs count contiguously from 0 to N-1."""
        if self.node_count() == 0:
            return False
        ids = self.nodes()
        return min(ids) == 0 and max(ids) == self.node_count() - 1

    @property
    def graph(self) -> nx.DiGraph:
        """A read-only view of the underlying graph."""
        return self._graph.copy(as_view=True)

    # ------------------------------------------------------------------
    # Derived webs
    # ------------------------------------------------------------------

    def subweb(self, node_ids: Iterable[int]) -> "FoodWeb":
        """Return the subgraph with the given nodes and the links between them."""
        node_ids = [int(n) for n in node_ids]
        for node_id in node_ids:
            self._require(node_id)
        web = FoodWeb()
        web._graph = self._graph.subgraph(node_ids).copy()
        return web

    def normalized_copy(self, node_ids: Iterable[int]) -> "FoodWeb":
        """Return a copy with node IDs renumbered to 0..N-1.

        Parameters
        ----------
        node_ids : iterable of int
            All existing node IDs; the position of each ID in this sequence
            becomes its new ID.

        Returns
        -------
        FoodWeb
            Normalized copy of this food web
        """
        node_ids = [int(n) for n in node_ids]
        if len(node_ids) != self.node_count() or len(set(node_ids)) != len(node_ids):
            raise ValueError("Wrong number of node IDs")
        for node_id in node_ids:
            self._require(node_id)
        mapping = {old: new for new, old in enumerate(node_ids)}
        web = FoodWeb()
        web._graph = nx.relabel_nodes(self._graph, mapping, copy=True)
        return web

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    @classmethod
    def from_json(cls, source: Union[str, Path, TextIO]) -> "FoodWeb":
        """Create a food web from its JSON representation.

        ``source`` may be a JSON string, a path to a JSON file, or an open
        text file. The expected form is::

            {
                "nodeAttributes": {
                    "1": {"nodeType": "PRODUCER"},
                    "2": {"nodeType": "CONSUMER"}
                },
                "links": {"1": [2]}
            }
        """
        if hasattr(source, "read"):
            data = json.load(source)
        elif isinstance(source, Path) or not str(source).lstrip().startswith("{"):
            with open(source, "r", encoding="utf-8") as f:
                data = json.load(f)
        else:
            data = json.loads(source)

        web = cls()
        for node_id, attributes in data.get("nodeAttributes", {}).items():
            node_type = attributes.get("nodeType", NodeType.CONSUMER.value)
            web.add_node(int(node_id), NodeType(node_type))
        for prey_id, predator_ids in data.get("links", {}).items():
            for predator_id in predator_ids:
                web.add_link(int(prey_id), int(predator_id))
        return web

    def to_dict(self) -> Dict[str, Dict]:
        links = {
            str(n): sorted(self._graph.successors(n)) for n in sorted(self._graph.nodes)
        }
        attributes = {
            str(n): {"nodeType": t.value}
            for n, t in sorted(self._graph.nodes(data="node_type"))
        }
        return {"links": links, "nodeAttributes": attributes}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    # ------------------------------------------------------------------

    def _require(self, node_id: int) -> None:
        if not self.contains_node(node_id):
            raise FoodWebNodeAbsentError(node_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FoodWeb):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        n_producers = len(self.nodes_of_type(NodeType.PRODUCER))
        return (
            f"FoodWeb(nodes={self.node_count()} "
            f"(producers={n_producers}, consumers={self.node_count() - n_producers}), "
            f"links={self.link_count()})"
        )
