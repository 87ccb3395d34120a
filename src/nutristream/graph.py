from __future__ import annotations

"""
Graph view of merge trees for the nutristream project.

This module turns a MergeTree into a networkx directed graph (edges point
from a parent cluster to its two children) and computes dendrogram
coordinates for each node, so the figure layer can draw the tree the same way
it draws any other node-and-edge graph.

Layout convention:
- leaves sit at y = 0 and x = 0, 1, 2, ... in the tree's leaf order
- an internal node sits at its merge height, centred over its two children

Main entry points:
- build_merge_graph(tree)
- dendrogram_layout(tree)
"""

from typing import Dict, Tuple

import logging
import networkx as nx
import pandas as pd

from .clustering import MergeTree

logger = logging.getLogger(__name__)


def build_merge_graph(tree: MergeTree) -> nx.DiGraph:
    """
    Build a directed graph whose edges run from each merge to its children.

    Node attributes:
    - label   item label for leaves, "" for internal nodes
    - height  merge height (0 for leaves)
    - size    number of leaves below the node
    - leaf    True for leaves
    """
    G = nx.DiGraph(criterion=tree.criterion)

    for leaf_id, label in enumerate(tree.labels):
        G.add_node(leaf_id, label=label, height=0.0, size=1, leaf=True)

    for node in tree.nodes:
        G.add_node(node.node_id, label="", height=node.height, size=node.size, leaf=False)
        G.add_edge(node.node_id, node.left, side="left")
        G.add_edge(node.node_id, node.right, side="right")

    logger.debug(
        "Built merge graph with %d nodes and %d edges",
        G.number_of_nodes(),
        G.number_of_edges(),
    )

    return G


def dendrogram_layout(tree: MergeTree) -> pd.DataFrame:
    """
    Compute x and y coordinates for every node of a merge tree.

    Returns
    -------
    pandas.DataFrame
        Indexed by node id with columns ["x", "y"].
    """
    positions: Dict[int, Tuple[float, float]] = {}

    for x, leaf_id in enumerate(tree.leaf_order()):
        positions[leaf_id] = (float(x), 0.0)

    # Merge order guarantees children are placed before their parent
    for node in tree.nodes:
        x_left = positions[node.left][0]
        x_right = positions[node.right][0]
        positions[node.node_id] = ((x_left + x_right) / 2.0, node.height)

    df_layout = pd.DataFrame.from_dict(positions, orient="index", columns=["x", "y"])
    df_layout.index.name = "node"

    return df_layout.sort_index()


def elbow_segments(G: nx.DiGraph, df_layout: pd.DataFrame):
    """
    Yield the polyline for every parent to child edge in dendrogram style.

    Each polyline goes horizontally from the parent's x at the parent height
    to the child's x, then down to the child. Yields lists of (x, y) points.
    """
    for parent, child in G.edges():
        px, py = df_layout.loc[parent, ["x", "y"]]
        cx, cy = df_layout.loc[child, ["x", "y"]]
        yield [(float(px), float(py)), (float(cx), float(py)), (float(cx), float(cy))]
