"""
Plotting module for PyATN.

Matplotlib figures for food webs and simulation results:
- Food web network diagrams, nodes colored by type and sized by biomass
- Biomass time series, with extinctions and early stops marked
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import networkx as nx
import numpy as np

from pyatn.config import PLOTS
from pyatn.core.constants import NEVER_EXTINCT
from pyatn.core.foodweb import FoodWeb, NodeType
from pyatn.core.simulation import SimulationResults


# =============================================================================
# FOOD WEB DIAGRAMS
# =============================================================================

def trophic_positions(web: FoodWeb) -> dict:
    """Node positions with y = shortest distance from a producer.

    Nodes with no path from any producer are placed on the bottom row.
    """
    graph = web.graph
    producers = web.nodes_of_type(NodeType.PRODUCER)
    levels = (
        nx.multi_source_dijkstra_path_length(graph, producers) if producers else {}
    )
    rows = {}
    for node in sorted(graph.nodes):
        rows.setdefault(levels.get(node, 0), []).append(node)

    pos = {}
    for level, nodes in rows.items():
        n = len(nodes)
        for i, node in enumerate(nodes):
            pos[node] = ((i - (n - 1) / 2) * 0.8, level)
    return pos


def plot_foodweb(
    web: FoodWeb,
    biomass: Optional[Sequence[float]] = None,
    title: str = "Food Web",
    layout: str = 'trophic',
    show_labels: bool = True,
    labels: Optional[dict] = None,
    figsize: Optional[Tuple[int, int]] = None,
    ax: Optional[plt.Axes] = None,
) -> plt.Figure:
    """Plot food web network diagram.

    Parameters
    ----------
    web : FoodWeb
        Food web to draw; links are drawn prey -> predator
    biomass : sequence of float, optional
        Biomass per node ID (normalized webs only), used to scale node size
    title : str
        Plot title
    layout : str
        Node layout: 'trophic' (y = distance from producers), 'spring', 'circular'
    show_labels : bool
        Show node labels
    labels : dict, optional
        Node ID -> label; defaults to the node IDs
    figsize : tuple, optional
        Figure size
    ax : Axes, optional
        Matplotlib axes to plot on

    Returns
    -------
    matplotlib.Figure
        The figure object
    """
    G = web.graph

    if layout == 'trophic':
        pos = trophic_positions(web)
    elif layout == 'circular':
        pos = nx.circular_layout(G)
    else:
        pos = nx.spring_layout(G, seed=42)

    nodes = sorted(G.nodes)
    if biomass is not None:
        biomass = np.asarray(biomass, dtype=float)
        max_bio = biomass.max() if biomass.size and biomass.max() > 0 else 1.0
        node_sizes = [300 + 2000 * (biomass[i] / max_bio) for i in nodes]
    else:
        node_sizes = [800] * len(nodes)

    node_colors = [PLOTS.colors[web.node_type(i).value] for i in nodes]

    if ax is None:
        fig, ax = plt.subplots(
            figsize=figsize or (PLOTS.default_width, PLOTS.default_height)
        )
    else:
        fig = ax.figure

    nx.draw_networkx_nodes(
        G, pos,
        nodelist=nodes,
        node_size=node_sizes,
        node_color=node_colors,
        ax=ax,
        alpha=0.8
    )
    nx.draw_networkx_edges(
        G, pos,
        edge_color='gray',
        alpha=0.5,
        arrows=True,
        arrowsize=15,
        connectionstyle='arc3,rad=0.1',
        ax=ax
    )
    if show_labels:
        nx.draw_networkx_labels(
            G, pos, labels or {i: str(i) for i in nodes}, font_size=8, ax=ax
        )

    ax.set_title(title, fontsize=14)
    ax.axis('off')

    plt.tight_layout()
    return fig


# =============================================================================
# SIMULATION TIME SERIES
# =============================================================================

def plot_biomass(
    results: SimulationResults,
    nodes: Optional[List[int]] = None,
    node_labels: Optional[Sequence] = None,
    log_scale: bool = False,
    mark_extinctions: bool = True,
    title: str = "Biomass Time Series",
    figsize: Optional[Tuple[int, int]] = None,
    legend_loc: str = 'best',
    ax: Optional[plt.Axes] = None,
) -> plt.Figure:
    """Plot biomass time series from a simulation.

    Parameters
    ----------
    results : SimulationResults
        Results of a simulation run with biomass recording enabled
    nodes : list of int, optional
        Node indices to plot (default: all)
    node_labels : sequence, optional
        Label per node index, e.g. the original node IDs
    log_scale : bool
        Use a logarithmic biomass axis
    mark_extinctions : bool
        Draw a marker where each plotted node went extinct
    title : str
        Plot title
    figsize : tuple, optional
        Figure size
    legend_loc : str
        Legend location
    ax : Axes, optional
        Matplotlib axes

    Returns
    -------
    matplotlib.Figure
    """
    frame = results.biomass_frame(node_labels)
    if nodes is None:
        nodes = list(range(results.node_count))

    if ax is None:
        fig, ax = plt.subplots(
            figsize=figsize or (PLOTS.default_width, PLOTS.default_height)
        )
    else:
        fig = ax.figure

    step_size = results.simulation_parameters.step_size
    for i in nodes:
        column = frame.columns[i]
        line, = ax.plot(frame.index, frame[column], label=f'Node {column}', linewidth=1.5)
        extinct_at = results.extinction_timesteps[i]
        if mark_extinctions and extinct_at != NEVER_EXTINCT \
                and extinct_at < results.timesteps_simulated:
            ax.axvline(extinct_at * step_size, color=line.get_color(), linestyle=':', alpha=0.6)

    if results.stopped_early:
        ax.axvline(
            results.timesteps_simulated * step_size,
            color='k', linestyle='--', alpha=0.5,
            label=results.stop_event.name.replace('_', ' ').title()
        )

    if log_scale:
        ax.set_yscale('log')
    ax.set_xlabel('Time', fontsize=11)
    ax.set_ylabel('Biomass', fontsize=11)
    ax.set_title(title, fontsize=12)

    ax.legend(loc=legend_loc, fontsize=9)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def save_plots(
    figures: Union[plt.Figure, List[plt.Figure]],
    filename: str,
    dpi: int = PLOTS.dpi,
    format: str = 'png'
) -> None:
    """Save matplotlib figure(s) to file.

    Parameters
    ----------
    figures : Figure or list of Figure
        Figure(s) to save
    filename : str
        Output filename (without extension for multiple figures)
    dpi : int
        Resolution
    format : str
        Output format ('png', 'pdf', 'svg')
    """
    if isinstance(figures, plt.Figure):
        figures = [figures]

    if len(figures) == 1:
        figures[0].savefig(f"{filename}.{format}", dpi=dpi, bbox_inches='tight')
    else:
        for i, fig in enumerate(figures):
            fig.savefig(f"{filename}_{i+1}.{format}", dpi=dpi, bbox_inches='tight')
