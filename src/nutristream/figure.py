from __future__ import annotations

"""
Plotly figure construction for the nutristream project.

This module builds the interactive figures shown in the report:

- a PCA biplot (observations projected on PC1 and PC2, loading vectors as
  arrows)
- a scree chart of explained variance per component
- a dendrogram drawn from the networkx graph of a merge tree

Main entry points:
- build_biplot_figure(result, cfg)
- build_scree_figure(result)
- build_dendrogram_figure(tree, title)
"""

from typing import List

import logging
import numpy as np
import plotly.graph_objs as go

from .clustering import MergeTree
from .config import AnalysisConfig
from .graph import build_merge_graph, dendrogram_layout, elbow_segments
from .pca import PcaResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# PCA figures
# ---------------------------------------------------------------------------


def _loading_scale(result: PcaResult, xs: np.ndarray, ys: np.ndarray) -> float:
    """
    Factor that stretches unit loading vectors to the spread of the scores.

    Arrows then reach roughly 80% of the furthest observation.
    """
    score_extent = float(np.max(np.abs(np.concatenate([xs, ys])))) if len(xs) else 1.0
    loading_extent = float(np.max(np.abs(result.loadings.iloc[:, :2].to_numpy())))
    if score_extent == 0.0 or loading_extent == 0.0:
        return 1.0
    return 0.8 * score_extent / loading_extent


def _axis_title(result: PcaResult, k: int) -> str:
    if k > result.n_components:
        return ""
    ratio = float(result.explained_variance_ratio.iloc[k - 1])
    return f"PC{k} ({100.0 * ratio:.1f}%)"


def build_biplot_figure(result: PcaResult, cfg: AnalysisConfig) -> go.Figure:
    """
    Build a biplot of the first two principal components.

    With a single feature there is no second component and every point is
    drawn at y = 0.
    """
    xs = result.scores.iloc[:, 0].to_numpy()
    if result.n_components > 1:
        ys = result.scores.iloc[:, 1].to_numpy()
        load_y = result.loadings.iloc[:, 1].to_numpy()
    else:
        ys = np.zeros_like(xs)
        load_y = np.zeros(len(result.loadings))
    load_x = result.loadings.iloc[:, 0].to_numpy()

    score_trace = go.Scatter(
        x=xs,
        y=ys,
        mode="markers",
        text=[str(label) for label in result.scores.index],
        hoverinfo="text",
        marker=dict(size=8, color="#1f77b4", opacity=0.7,
                    line=dict(width=0.5, color="#ffffff")),
        name="observations",
    )

    scale = _loading_scale(result, xs, ys)
    lengths = np.hypot(load_x, load_y)
    strongest = np.argsort(-lengths, kind="stable")[: cfg.max_loading_arrows]

    annotations: List[dict] = []
    for j in strongest:
        feature = result.loadings.index[j]
        annotations.append(
            dict(
                x=float(load_x[j] * scale),
                y=float(load_y[j] * scale),
                ax=0,
                ay=0,
                xref="x",
                yref="y",
                axref="x",
                ayref="y",
                showarrow=True,
                arrowhead=2,
                arrowwidth=1.5,
                arrowcolor="#d62728",
                text=cfg.feature_label(str(feature)),
                font=dict(size=10, color="#d62728"),
            )
        )

    layout = go.Layout(
        title=dict(text=cfg.biplot_title, x=0.5),
        showlegend=False,
        hovermode="closest",
        margin=dict(b=40, l=40, r=20, t=50),
        xaxis=dict(title=_axis_title(result, 1), zeroline=True),
        yaxis=dict(title=_axis_title(result, 2), zeroline=True),
        annotations=annotations,
    )

    logger.info(
        "Built biplot with %d observations and %d loading arrows",
        len(xs),
        len(annotations),
    )

    return go.Figure(data=[score_trace], layout=layout)


def build_scree_figure(result: PcaResult) -> go.Figure:
    """Bar chart of explained variance with the cumulative share as a line."""
    names = result.component_names
    ratio = result.explained_variance_ratio.to_numpy()

    bars = go.Bar(
        x=names,
        y=ratio,
        name="proportion",
        marker=dict(color="#2ca02c"),
    )
    cumulative = go.Scatter(
        x=names,
        y=np.cumsum(ratio),
        mode="lines+markers",
        name="cumulative",
        line=dict(color="#7f7f7f"),
    )

    layout = go.Layout(
        title=dict(text="Variance explained by component", x=0.5),
        margin=dict(b=40, l=40, r=20, t=50),
        yaxis=dict(title="Proportion of variance", range=[0, 1.05]),
        legend=dict(orientation="h"),
    )

    return go.Figure(data=[bars, cumulative], layout=layout)


# ---------------------------------------------------------------------------
# Dendrogram
# ---------------------------------------------------------------------------


def build_dendrogram_figure(tree: MergeTree, title: str = "") -> go.Figure:
    """
    Build a dendrogram figure for a merge tree.

    Branches are drawn as elbows from the networkx graph of the tree, leaves
    are labelled along the x axis in the tree's leaf order, and hovering an
    internal node shows its merge height and size.
    """
    G = build_merge_graph(tree)
    df_layout = dendrogram_layout(tree)

    edge_x: List = []
    edge_y: List = []
    for points in elbow_segments(G, df_layout):
        for x, y in points:
            edge_x.append(x)
            edge_y.append(y)
        edge_x.append(None)
        edge_y.append(None)

    edge_trace = go.Scatter(
        x=edge_x,
        y=edge_y,
        mode="lines",
        line=dict(width=1.2, color="#444444"),
        hoverinfo="skip",
        name="branches",
    )

    internal = [node.node_id for node in tree.nodes]
    node_trace = go.Scatter(
        x=df_layout.loc[internal, "x"],
        y=df_layout.loc[internal, "y"],
        mode="markers",
        marker=dict(size=5, color="#ff7f0e"),
        text=[
            f"height {G.nodes[n]['height']:.3f}<br>{G.nodes[n]['size']} items"
            for n in internal
        ],
        hoverinfo="text",
        name="merges",
    )

    leaf_order = tree.leaf_order()
    layout = go.Layout(
        title=dict(text=title or f"{tree.criterion.capitalize()} linkage", x=0.5),
        showlegend=False,
        hovermode="closest",
        margin=dict(b=90, l=50, r=20, t=50),
        xaxis=dict(
            tickmode="array",
            tickvals=list(range(len(leaf_order))),
            ticktext=[tree.labels[i] for i in leaf_order],
            tickangle=-90,
            showgrid=False,
            zeroline=False,
        ),
        yaxis=dict(title="Height", zeroline=False),
    )

    logger.info(
        "Built dendrogram figure for %s linkage with %d leaves",
        tree.criterion,
        tree.n_leaves,
    )

    return go.Figure(data=[edge_trace, node_trace], layout=layout)
