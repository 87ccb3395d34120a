"""
Tests for merge graphs, layouts, Plotly figures and the tanglegram image.
"""

import base64

import networkx as nx
import numpy as np
import pytest

from nutristream.clustering import agglomerate, cluster_observations
from nutristream.config import AnalysisConfig
from nutristream.errors import LeafSetMismatchError
from nutristream.figure import build_biplot_figure, build_dendrogram_figure, build_scree_figure
from nutristream.graph import build_merge_graph, dendrogram_layout, elbow_segments
from nutristream.pca import run_pca
from nutristream.preprocessing import build_food_matrix, standardize
from nutristream.tanglegram import create_tanglegram_image


# ------------------------------------------------------------------
# graph
# ------------------------------------------------------------------


def test_merge_graph_is_a_tree(scenario_points):
    """n leaves and n - 1 merges give 2n - 1 nodes joined by 2n - 2 edges."""
    tree = cluster_observations(scenario_points)

    G = build_merge_graph(tree)

    assert G.number_of_nodes() == 7
    assert G.number_of_edges() == 6
    assert nx.is_tree(G.to_undirected())
    assert G.in_degree(tree.root) == 0
    assert G.nodes[0]["label"] == "p1"
    assert G.nodes[0]["leaf"] is True
    assert G.nodes[tree.root]["size"] == 4
    assert G.edges[tree.root, 4]["side"] == "left"


def test_dendrogram_layout(scenario_points):
    """Leaves on the baseline, merges centred over their children at their height."""
    tree = cluster_observations(scenario_points)

    df_layout = dendrogram_layout(tree)

    assert list(df_layout.index) == list(range(7))
    assert list(df_layout.loc[[0, 1, 2, 3], "x"]) == [0.0, 1.0, 2.0, 3.0]
    assert (df_layout.loc[[0, 1, 2, 3], "y"] == 0.0).all()
    assert df_layout.loc[4, "x"] == 0.5
    assert df_layout.loc[5, "x"] == 2.5
    assert df_layout.loc[6, "x"] == 1.5
    assert df_layout.loc[6, "y"] == pytest.approx(np.sqrt(61.0))


def test_layout_follows_rotation(scenario_points):
    """Rotating the root moves the second pair to the left."""
    tree = cluster_observations(scenario_points).rotate(6)

    df_layout = dendrogram_layout(tree)

    assert df_layout.loc[2, "x"] == 0.0
    assert df_layout.loc[0, "x"] == 2.0


def test_elbow_segments(scenario_points):
    """Each edge becomes a three point elbow from parent height to the child."""
    tree = cluster_observations(scenario_points)
    G = build_merge_graph(tree)
    df_layout = dendrogram_layout(tree)

    segments = list(elbow_segments(G, df_layout))

    assert len(segments) == 6
    for (px, py), (cx, top), (cx2, cy) in segments:
        assert py == top
        assert cx == cx2
        assert cy <= py


# ------------------------------------------------------------------
# Plotly figures
# ------------------------------------------------------------------


def test_dendrogram_figure(scenario_points):
    """Leaf labels appear along the x axis in leaf order."""
    tree = cluster_observations(scenario_points, "single")

    fig = build_dendrogram_figure(tree)

    assert len(fig.data) == 2
    assert list(fig.layout.xaxis.ticktext) == ["p1", "p2", "p3", "p4"]
    assert fig.layout.title.text == "Single linkage"
    # three points plus a gap per edge
    assert len(fig.data[0].x) == 6 * 4
    assert len(fig.data[1].x) == 3


def test_biplot_arrows(random_matrix):
    """One arrow per feature up to the configured maximum."""
    result = run_pca(standardize(random_matrix))

    fig = build_biplot_figure(result, AnalysisConfig())
    limited = build_biplot_figure(result, AnalysisConfig(max_loading_arrows=2))

    assert len(fig.data) == 1
    assert len(fig.data[0].x) == 30
    assert len(fig.layout.annotations) == 5
    assert len(limited.layout.annotations) == 2
    assert fig.layout.xaxis.title.text.startswith("PC1 (")


def test_biplot_labels_use_schema(food_table):
    """Arrow text uses the schema's display labels."""
    cfg = AnalysisConfig()

    result = run_pca(standardize(build_food_matrix(food_table, cfg)))
    fig = build_biplot_figure(result, cfg)

    texts = {annotation.text for annotation in fig.layout.annotations}
    assert cfg.feature_label("Energy_kcal") in texts


def test_scree_figure(random_matrix):
    """Bars for each component and a cumulative line ending at 1."""
    result = run_pca(standardize(random_matrix))

    fig = build_scree_figure(result)

    assert list(fig.data[0].x) == result.component_names
    assert sum(fig.data[0].y) == pytest.approx(1.0)
    assert fig.data[1].y[-1] == pytest.approx(1.0)


# ------------------------------------------------------------------
# tanglegram
# ------------------------------------------------------------------


def test_tanglegram_png(random_matrix):
    """The image is a base64 encoded PNG."""
    complete = cluster_observations(random_matrix, "complete")
    single = cluster_observations(random_matrix, "single")

    encoded = create_tanglegram_image(complete, single, title="test", dpi=40)

    assert base64.b64decode(encoded).startswith(b"\x89PNG")


def test_tanglegram_rejects_different_leaves(scenario_points):
    """Both trees must cover the same items."""
    tree = cluster_observations(scenario_points)
    other = agglomerate(np.array([[0.0, 1.0], [1.0, 0.0]]), labels=["p1", "q"])

    with pytest.raises(LeafSetMismatchError):
        create_tanglegram_image(tree, other)
