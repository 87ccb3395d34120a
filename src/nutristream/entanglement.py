from __future__ import annotations

"""
Comparison of two merge trees over the same items.

Entanglement measures how far apart the leaf orders of two dendrograms are
when they are drawn facing each other (a tanglegram). For the leaf in
position i of the second tree, let pos_a(i) be the position of the same
label in the first tree. With exponent L (1.5 by default):

    entanglement = sum_i |i - pos_a(i)|^L / sum_i |i - (n + 1 - i)|^L

The denominator is the score of a fully reversed order, so the result lies in
[0, 1] and two trees with the same leaf order score 0.

Untangling rotates internal nodes (swaps sibling subtrees) to lower the
score. It never changes the topology or merge heights of either tree and is
a greedy search: it stops at a local minimum.

Main entry points:
- entanglement(tree_a, tree_b)
- untangle_step_one_side(tree_a, tree_b)
- untangle_step_two_sides(tree_a, tree_b)
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

import logging
import numpy as np

from .clustering import MergeTree
from .config import DEFAULT_ENTANGLEMENT_NORM
from .errors import LeafSetMismatchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UntangleResult:
    """Trees after untangling together with the scores before and after."""

    tree_a: MergeTree
    tree_b: MergeTree
    entanglement_before: float
    entanglement_after: float
    n_rotations: int


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def check_same_leaves(tree_a: MergeTree, tree_b: MergeTree) -> None:
    """Raise LeafSetMismatchError unless both trees have the same labels."""
    set_a = set(tree_a.labels)
    set_b = set(tree_b.labels)
    if set_a != set_b:
        raise LeafSetMismatchError(set_a - set_b, set_b - set_a)


def _order_entanglement(
    labels_a: Sequence[str],
    labels_b: Sequence[str],
    norm: float,
) -> float:
    n = len(labels_a)
    position_in_a = {label: i for i, label in enumerate(labels_a, start=1)}
    ranks = np.array([position_in_a[label] for label in labels_b], dtype=float)

    one_to_n = np.arange(1, n + 1, dtype=float)
    worst = float(np.sum(np.abs(one_to_n - one_to_n[::-1]) ** norm))
    if worst == 0.0:
        return 0.0

    return float(np.sum(np.abs(one_to_n - ranks) ** norm) / worst)


def entanglement(
    tree_a: MergeTree,
    tree_b: MergeTree,
    norm: float = DEFAULT_ENTANGLEMENT_NORM,
) -> float:
    """
    Score the disagreement between the leaf orders of two trees.

    Parameters
    ----------
    tree_a, tree_b
        Merge trees over the same labels.
    norm
        Exponent applied to position differences. Must be positive.

    Returns
    -------
    float
        Value in [0, 1]; 0 means identical leaf orders.
    """
    if norm <= 0:
        raise ValueError("norm must be positive")
    check_same_leaves(tree_a, tree_b)
    return _order_entanglement(tree_a.ordered_labels(), tree_b.ordered_labels(), norm)


# ---------------------------------------------------------------------------
# Untangling
# ---------------------------------------------------------------------------


def _rotate_greedily(
    fixed_labels: Sequence[str],
    tree: MergeTree,
    score: float,
    norm: float,
) -> Tuple[MergeTree, float, int]:
    """One pass over tree's internal nodes, root first, keeping improving rotations."""
    rotations = 0
    for node_id in tree.internal_nodes_top_down():
        candidate = tree.rotate(node_id)
        candidate_score = _order_entanglement(fixed_labels, candidate.ordered_labels(), norm)
        if candidate_score < score:
            tree, score = candidate, candidate_score
            rotations += 1
    return tree, score, rotations


def untangle_step_one_side(
    tree_a: MergeTree,
    tree_b: MergeTree,
    norm: float = DEFAULT_ENTANGLEMENT_NORM,
    max_passes: int = 25,
) -> UntangleResult:
    """
    Reduce entanglement by rotating nodes of tree_b while tree_a stays fixed.

    Each pass visits tree_b's internal nodes from the root down and keeps a
    rotation only if it strictly lowers entanglement. Passes repeat until one
    makes no change or max_passes is reached.
    """
    if max_passes < 1:
        raise ValueError("max_passes must be at least 1")
    before = entanglement(tree_a, tree_b, norm)

    fixed_labels = tree_a.ordered_labels()
    current, score = tree_b, before
    total_rotations = 0

    for pass_number in range(1, max_passes + 1):
        current, score, rotations = _rotate_greedily(
            fixed_labels, current, score, norm
        )
        total_rotations += rotations
        logger.debug(
            "Untangle pass %d: %d rotations, entanglement %.4f",
            pass_number,
            rotations,
            score,
        )
        if rotations == 0 or score == 0.0:
            break

    logger.info(
        "One-sided untangle: entanglement %.4f -> %.4f after %d rotations",
        before,
        score,
        total_rotations,
    )

    return UntangleResult(
        tree_a=tree_a,
        tree_b=current,
        entanglement_before=before,
        entanglement_after=score,
        n_rotations=total_rotations,
    )


def untangle_step_two_sides(
    tree_a: MergeTree,
    tree_b: MergeTree,
    norm: float = DEFAULT_ENTANGLEMENT_NORM,
    max_passes: int = 25,
) -> UntangleResult:
    """
    Alternate one-sided passes, rotating tree_b and then tree_a.

    Stops when neither side improves or max_passes rounds have run.
    """
    if max_passes < 1:
        raise ValueError("max_passes must be at least 1")
    before = entanglement(tree_a, tree_b, norm)

    left, right, score = tree_a, tree_b, before
    total_rotations = 0

    for _ in range(max_passes):
        right, score, rotations_right = _rotate_greedily(
            left.ordered_labels(), right, score, norm
        )
        left, score, rotations_left = _rotate_greedily(
            right.ordered_labels(), left, score, norm
        )
        total_rotations += rotations_right + rotations_left
        if rotations_right + rotations_left == 0 or score == 0.0:
            break

    logger.info(
        "Two-sided untangle: entanglement %.4f -> %.4f after %d rotations",
        before,
        score,
        total_rotations,
    )

    return UntangleResult(
        tree_a=left,
        tree_b=right,
        entanglement_before=before,
        entanglement_after=score,
        n_rotations=total_rotations,
    )
