"""
Tests for agglomerative clustering and merge trees.
"""

import numpy as np
import pandas as pd
import pytest
from scipy.cluster.hierarchy import linkage
from scipy.spatial.distance import squareform

from nutristream.clustering import (
    agglomerate,
    cluster_observations,
    compare_linkages,
    cut_tree,
    resolve_criterion,
)
from nutristream.errors import InsufficientDataError, InvalidCriterionError
from nutristream.similarity import build_distance_matrix


def _assert_monotone(tree):
    for node in tree.nodes:
        assert node.height >= tree.height_of(node.left)
        assert node.height >= tree.height_of(node.right)


# ------------------------------------------------------------------
# Two separated pairs
# ------------------------------------------------------------------


def test_two_pairs_complete_linkage(scenario_points):
    """Each pair merges at height 1, then the pairs join at the largest gap."""
    tree = cluster_observations(scenario_points, "complete")

    assert [(n.left, n.right) for n in tree.nodes] == [(0, 1), (2, 3), (4, 5)]
    np.testing.assert_allclose(tree.heights, [1.0, 1.0, np.sqrt(61.0)])
    assert tree.members(4) == (0, 1)
    assert tree.members(5) == (2, 3)


def test_two_pairs_single_linkage(scenario_points):
    """Single linkage joins the pairs at their closest points."""
    tree = cluster_observations(scenario_points, "single")

    np.testing.assert_allclose(tree.heights, [1.0, 1.0, np.sqrt(41.0)])


def test_two_pairs_cut(scenario_points):
    """Cutting into two clusters recovers the pairs."""
    tree = cluster_observations(scenario_points, "complete")

    clusters = cut_tree(tree, 2)

    assert list(clusters.index) == ["p1", "p2", "p3", "p4"]
    assert list(clusters) == [1, 1, 2, 2]


# ------------------------------------------------------------------
# Structure and properties
# ------------------------------------------------------------------


@pytest.mark.parametrize("criterion", ["complete", "single"])
def test_tree_shape_and_monotone_heights(random_matrix, criterion):
    """n - 1 merges, every leaf once, heights never decrease root-ward."""
    tree = cluster_observations(random_matrix, criterion)

    assert tree.n_leaves == 30
    assert len(tree.nodes) == 29
    assert sorted(tree.leaf_order()) == list(range(30))
    assert tree.nodes[-1].size == 30
    assert np.all(np.diff(tree.heights) >= 0)
    _assert_monotone(tree)


def test_single_never_above_complete(random_matrix):
    """At every merge rank the single linkage height is at most the complete one."""
    trees = compare_linkages(random_matrix, ["complete", "single"])

    assert np.all(trees["single"].heights <= trees["complete"].heights + 1e-12)


@pytest.mark.parametrize("criterion", ["complete", "single"])
def test_matches_scipy(random_matrix, criterion):
    """Merge heights and sizes agree with scipy.cluster.hierarchy.linkage."""
    D = build_distance_matrix(random_matrix)

    tree = agglomerate(D, list(random_matrix.index), criterion)
    Z = linkage(squareform(D, checks=False), method=criterion)

    np.testing.assert_allclose(tree.heights, Z[:, 2], atol=1e-12)
    np.testing.assert_array_equal(tree.to_linkage_matrix()[:, 3], Z[:, 3])


def test_ties_prefer_lowest_indices():
    """Equal distances are resolved by the smallest cluster keys."""
    points = pd.DataFrame({"x": [0.0, 1.0, 2.0, 3.0]})

    tree = cluster_observations(points, "single")

    assert [(n.left, n.right) for n in tree.nodes] == [(0, 1), (4, 2), (5, 3)]
    np.testing.assert_allclose(tree.heights, [1.0, 1.0, 1.0])


def test_default_labels():
    """Without labels, items are named by position."""
    tree = agglomerate(np.array([[0.0, 2.0], [2.0, 0.0]]))

    assert tree.labels == ("0", "1")
    assert tree.heights.tolist() == [2.0]


def test_criterion_is_case_insensitive(scenario_points):
    """Criterion names are normalized."""
    assert resolve_criterion(" Complete ") == "complete"
    assert cluster_observations(scenario_points, "SINGLE").criterion == "single"


# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------


@pytest.mark.parametrize("criterion", ["average", "ward", "", None])
def test_unknown_criterion(scenario_points, criterion):
    """Unsupported criteria raise InvalidCriterionError."""
    D = build_distance_matrix(scenario_points)

    with pytest.raises(InvalidCriterionError) as excinfo:
        agglomerate(D, criterion=criterion)

    assert excinfo.value.criterion == criterion
    assert excinfo.value.supported == ("complete", "single")


def test_criterion_checked_before_size():
    """An unknown criterion is reported even for a one item matrix."""
    with pytest.raises(InvalidCriterionError):
        agglomerate(np.zeros((1, 1)), criterion="average")


def test_single_item():
    """Clustering needs at least two items."""
    with pytest.raises(InsufficientDataError):
        agglomerate(np.zeros((1, 1)))


def test_rejects_asymmetric_matrix():
    """Dissimilarities must be symmetric."""
    with pytest.raises(ValueError):
        agglomerate(np.array([[0.0, 1.0], [2.0, 0.0]]))


def test_rejects_label_mismatch():
    """One label per item."""
    with pytest.raises(ValueError):
        agglomerate(np.array([[0.0, 1.0], [1.0, 0.0]]), labels=["a"])


# ------------------------------------------------------------------
# Rotation and cutting
# ------------------------------------------------------------------


def test_rotate_changes_order_not_membership(random_matrix):
    """Rotating swaps sibling subtrees and leaves memberships intact."""
    tree = cluster_observations(random_matrix, "complete")

    rotated = tree.rotate(tree.root)

    root = tree.node(tree.root)
    order = tree.leaf_order()
    k = len(tree.members(root.left))
    assert rotated.leaf_order() == order[k:] + order[:k]
    for node in tree.nodes:
        assert rotated.members(node.node_id) == tree.members(node.node_id)
    np.testing.assert_array_equal(rotated.heights, tree.heights)
    # Original is untouched
    assert tree.node(tree.root) == root


def test_rotate_leaf_is_error(scenario_points):
    """Leaves have no children to swap."""
    tree = cluster_observations(scenario_points)

    with pytest.raises(KeyError):
        tree.rotate(0)


def test_cut_tree_extremes(random_matrix):
    """k = 1 puts everything together; k = n separates everything."""
    tree = cluster_observations(random_matrix)

    assert set(cut_tree(tree, 1)) == {1}
    assert list(cut_tree(tree, 30)) == list(range(1, 31))
    with pytest.raises(ValueError):
        cut_tree(tree, 0)
    with pytest.raises(ValueError):
        cut_tree(tree, 31)


def test_cut_tree_consistent_with_members(random_matrix):
    """Items share a cluster exactly when they sit under one of the k roots."""
    tree = cluster_observations(random_matrix, "single")

    clusters = cut_tree(tree, 4)

    assert clusters.nunique() == 4
    assert clusters.iloc[0] == 1
    top = tree.node(tree.root)
    left_members = {tree.labels[i] for i in tree.members(top.left)}
    right_members = {tree.labels[i] for i in tree.members(top.right)}
    assert not set(clusters[list(left_members)]) & set(clusters[list(right_members)])


def test_linkage_matrix_layout(scenario_points):
    """Rows are [left, right, height, size] in merge order."""
    Z = cluster_observations(scenario_points).to_linkage_matrix()

    assert Z.shape == (3, 4)
    np.testing.assert_allclose(Z[:, 3], [2, 2, 4])
    np.testing.assert_allclose(Z[2, :2], [4, 5])


def test_ties_on_raw_offset_series():
    """Equal gaps between large raw values stay exact ties, merged from the left."""
    points = pd.DataFrame({"x": 1e6 + 0.5 * np.arange(6), "y": np.full(6, 3e5)})

    tree = cluster_observations(points, "single")

    assert [(n.left, n.right) for n in tree.nodes] == [
        (0, 1), (6, 2), (7, 3), (8, 4), (9, 5)
    ]
    np.testing.assert_array_equal(tree.heights, np.full(5, 0.5))
