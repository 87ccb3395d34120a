from __future__ import annotations

"""
Agglomerative hierarchical clustering for the nutristream project.

This module turns a dissimilarity matrix into a merge tree (dendrogram) by
repeatedly joining the two closest clusters until one cluster remains.

Supported linkage criteria:
- "complete"  d(A u B, X) = max(d(A, X), d(B, X))
- "single"    d(A u B, X) = min(d(A, X), d(B, X))

Tie-break: every cluster is keyed by the smallest original item index it
contains. When several pairs share the minimum distance, the pair with the
lexicographically smallest (key_A, key_B), key_A < key_B, is merged first.
The merged cluster keeps key_A; A becomes the left child and B the right.

Node ids follow the SciPy convention: leaves are 0..n-1 and the k-th merge
(0-based) creates node n + k.

Main entry points:
- agglomerate(dist_matrix, labels, criterion)
- cluster_observations(df, criterion)
- cut_tree(tree, k)
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import logging
import numpy as np
import pandas as pd

from .config import SUPPORTED_LINKAGES
from .errors import InsufficientDataError, InvalidCriterionError
from .similarity import build_distance_matrix

logger = logging.getLogger(__name__)


_LINKAGE_UPDATES = {
    "complete": np.maximum,
    "single": np.minimum,
}


# ---------------------------------------------------------------------------
# Merge tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MergeNode:
    """One internal node of a merge tree."""

    node_id: int
    left: int
    right: int
    height: float
    size: int


@dataclass(frozen=True)
class MergeTree:
    """
    Binary merge tree over a fixed set of labelled items.

    nodes holds the n - 1 internal nodes in merge order. The leaf order of
    the tree is the left-to-right order of an in-order walk, so rotating a
    node (swapping its children) changes how the dendrogram is drawn but not
    which items each node contains.
    """

    labels: Tuple[str, ...]
    nodes: Tuple[MergeNode, ...]
    criterion: str

    def __post_init__(self) -> None:
        if len(self.nodes) != len(self.labels) - 1:
            raise ValueError(
                f"A tree over {len(self.labels)} leaves needs "
                f"{len(self.labels) - 1} internal nodes, got {len(self.nodes)}"
            )

    @property
    def n_leaves(self) -> int:
        return len(self.labels)

    @property
    def root(self) -> int:
        return self.nodes[-1].node_id

    @property
    def heights(self) -> np.ndarray:
        return np.array([node.height for node in self.nodes], dtype=float)

    def is_leaf(self, node_id: int) -> bool:
        return 0 <= node_id < self.n_leaves

    def node(self, node_id: int) -> MergeNode:
        if self.is_leaf(node_id):
            raise KeyError(f"Node {node_id} is a leaf")
        index = node_id - self.n_leaves
        if not 0 <= index < len(self.nodes):
            raise KeyError(f"No node with id {node_id}")
        return self.nodes[index]

    def height_of(self, node_id: int) -> float:
        return 0.0 if self.is_leaf(node_id) else self.node(node_id).height

    def leaf_order(self) -> List[int]:
        """Leaf ids from left to right."""
        order: List[int] = []
        stack = [self.root]
        while stack:
            current = stack.pop()
            if self.is_leaf(current):
                order.append(current)
                continue
            node = self.node(current)
            # Right pushed first so the left subtree is emitted first
            stack.append(node.right)
            stack.append(node.left)
        return order

    def ordered_labels(self) -> List[str]:
        return [self.labels[i] for i in self.leaf_order()]

    def members(self, node_id: int) -> Tuple[int, ...]:
        """Sorted leaf ids under a node."""
        if self.is_leaf(node_id):
            return (node_id,)
        found: List[int] = []
        stack = [node_id]
        while stack:
            current = stack.pop()
            if self.is_leaf(current):
                found.append(current)
            else:
                node = self.node(current)
                stack.extend((node.left, node.right))
        return tuple(sorted(found))

    def internal_nodes_top_down(self) -> List[int]:
        """Internal node ids from the root down (height, then id, descending)."""
        ordered = sorted(self.nodes, key=lambda nd: (nd.height, nd.node_id), reverse=True)
        return [nd.node_id for nd in ordered]

    def rotate(self, node_id: int) -> "MergeTree":
        """Return a copy of the tree with the children of node_id swapped."""
        node = self.node(node_id)
        index = node_id - self.n_leaves
        swapped = replace(node, left=node.right, right=node.left)
        nodes = self.nodes[:index] + (swapped,) + self.nodes[index + 1:]
        return replace(self, nodes=nodes)

    def to_linkage_matrix(self) -> np.ndarray:
        """
        Return the tree as a SciPy style linkage matrix.

        Row k is [left, right, height, size] for the k-th merge, which is
        what scipy.cluster.hierarchy.dendrogram expects.
        """
        return np.array(
            [[nd.left, nd.right, nd.height, nd.size] for nd in self.nodes],
            dtype=float,
        )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def resolve_criterion(criterion: object) -> str:
    """Normalize a linkage criterion name or raise InvalidCriterionError."""
    if not isinstance(criterion, str):
        raise InvalidCriterionError(criterion, SUPPORTED_LINKAGES)
    key = criterion.strip().lower()
    if key not in _LINKAGE_UPDATES:
        raise InvalidCriterionError(criterion, SUPPORTED_LINKAGES)
    return key


def _check_dissimilarity(dist_matrix: np.ndarray) -> np.ndarray:
    D = np.asarray(dist_matrix, dtype=float)
    if D.ndim != 2 or D.shape[0] != D.shape[1]:
        raise ValueError("dist_matrix must be a square 2D array")
    if not np.isfinite(D).all():
        raise ValueError("dist_matrix contains missing or infinite values")
    if (D < 0).any():
        raise ValueError("dist_matrix contains negative distances")
    if not np.allclose(D, D.T, rtol=0.0, atol=1e-12):
        raise ValueError("dist_matrix is not symmetric")
    return D


# ---------------------------------------------------------------------------
# Agglomeration
# ---------------------------------------------------------------------------


def agglomerate(
    dist_matrix: np.ndarray,
    labels: Optional[Sequence] = None,
    criterion: str = "complete",
) -> MergeTree:
    """
    Build a merge tree by agglomerative clustering.

    Parameters
    ----------
    dist_matrix
        Square symmetric dissimilarity matrix of shape (n, n).
    labels
        Item labels in matrix order. Defaults to "0".."n-1".
    criterion
        Linkage criterion, "complete" or "single".

    Returns
    -------
    MergeTree
        n leaves and n - 1 internal nodes with non-decreasing heights.

    Raises
    ------
    InvalidCriterionError
        If criterion is not supported.
    InsufficientDataError
        If there are fewer than two items.
    """
    key = resolve_criterion(criterion)
    update = _LINKAGE_UPDATES[key]

    D = _check_dissimilarity(dist_matrix)
    n = D.shape[0]
    if n < 2:
        raise InsufficientDataError(n, 2, "Agglomerative clustering")

    if labels is None:
        labels = [str(i) for i in range(n)]
    labels = tuple(str(label) for label in labels)
    if len(labels) != n:
        raise ValueError(
            f"Got {len(labels)} labels for a {n} x {n} dissimilarity matrix"
        )
    if len(set(labels)) != n:
        raise ValueError("Item labels must be unique")

    logger.info("Agglomerating %d items with %s linkage", n, key)

    # Slot i holds the cluster whose smallest member is item i
    work = D.copy()
    np.fill_diagonal(work, np.inf)
    active = np.ones(n, dtype=bool)
    node_of_slot = list(range(n))
    size_of_slot = [1] * n
    nodes: List[MergeNode] = []

    for step in range(n - 1):
        slots = np.flatnonzero(active)
        rows, cols = np.triu_indices(len(slots), k=1)
        candidates = work[slots[rows], slots[cols]]
        # argmin returns the first minimum in row-major order
        best = int(np.argmin(candidates))
        a = int(slots[rows[best]])
        b = int(slots[cols[best]])
        height = float(candidates[best])

        node = MergeNode(
            node_id=n + step,
            left=node_of_slot[a],
            right=node_of_slot[b],
            height=height,
            size=size_of_slot[a] + size_of_slot[b],
        )
        nodes.append(node)

        logger.debug(
            "Merge %d: nodes %d and %d at height %.6f (size %d)",
            step,
            node.left,
            node.right,
            height,
            node.size,
        )

        merged = update(work[a], work[b])
        work[a, :] = merged
        work[:, a] = merged
        work[a, a] = np.inf
        work[b, :] = np.inf
        work[:, b] = np.inf
        active[b] = False

        node_of_slot[a] = node.node_id
        size_of_slot[a] = node.size

    tree = MergeTree(labels=labels, nodes=tuple(nodes), criterion=key)

    logger.info(
        "Built %s linkage tree: %d leaves, root height %.4f",
        key,
        n,
        nodes[-1].height,
    )

    return tree


def cluster_observations(
    df: pd.DataFrame,
    criterion: str = "complete",
) -> MergeTree:
    """
    Cluster the rows of an Observation Matrix by Euclidean distance.

    Row labels come from df.index.
    """
    key = resolve_criterion(criterion)
    dist_matrix = build_distance_matrix(df)
    return agglomerate(dist_matrix, labels=list(df.index), criterion=key)


def compare_linkages(
    df: pd.DataFrame,
    criteria: Iterable[str] = SUPPORTED_LINKAGES,
) -> Dict[str, MergeTree]:
    """
    Cluster the same observations under several linkage criteria.

    The distance matrix is computed once and shared.
    """
    keys = [resolve_criterion(c) for c in criteria]
    dist_matrix = build_distance_matrix(df)
    labels = list(df.index)
    return {
        key: agglomerate(dist_matrix, labels=labels, criterion=key)
        for key in keys
    }


# ---------------------------------------------------------------------------
# Cutting
# ---------------------------------------------------------------------------


def cut_tree(tree: MergeTree, k: int) -> pd.Series:
    """
    Cut a merge tree into k clusters.

    The last k - 1 merges are undone. Clusters are numbered 1..k in the
    order in which their first member appears in tree.labels.

    Returns
    -------
    pandas.Series
        Cluster number per label, indexed by label in original order.
    """
    n = tree.n_leaves
    if not 1 <= k <= n:
        raise ValueError(f"k must lie in 1..{n}, got {k}")

    kept_nodes = tree.nodes[: n - k]
    roots = set(range(n)) | {nd.node_id for nd in kept_nodes}
    for nd in kept_nodes:
        roots.discard(nd.left)
        roots.discard(nd.right)

    cluster_of_leaf = np.empty(n, dtype=int)
    for root_id in roots:
        for leaf in tree.members(root_id):
            cluster_of_leaf[leaf] = root_id

    numbering: Dict[int, int] = {}
    for root_id in cluster_of_leaf:
        numbering.setdefault(int(root_id), len(numbering) + 1)

    assignments = pd.Series(
        [numbering[int(r)] for r in cluster_of_leaf],
        index=pd.Index(tree.labels, name="label"),
        name="cluster",
    )

    logger.debug("Cut %s tree into %d clusters", tree.criterion, k)

    return assignments
