from __future__ import annotations

"""
Tanglegram rendering for the nutristream project.

A tanglegram draws two dendrograms over the same items facing each other,
leaves in the middle, and joins each pair of matching leaves with a line.
Crossing lines show where the two trees disagree; entanglement.py scores
that disagreement.

Responsibilities:
- Lay out both trees with graph.dendrogram_layout
- Draw them with Matplotlib, the left tree growing leftwards and the right
  tree growing rightwards
- Encode the figure as a base64 PNG string for embedding in HTML

Main entry point:
- create_tanglegram_image(tree_left, tree_right) -> str
"""

import base64
import io
import logging
from typing import Optional

import matplotlib.pyplot as plt

from .clustering import MergeTree
from .entanglement import check_same_leaves
from .graph import build_merge_graph, dendrogram_layout, elbow_segments

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _draw_tree(ax, tree: MergeTree, direction: float, color: str) -> None:
    """
    Draw one tree on ax with leaves at x = 0 and the root at
    direction * root height. Leaf positions run top to bottom.
    """
    G = build_merge_graph(tree)
    df_layout = dendrogram_layout(tree)
    n = tree.n_leaves

    for points in elbow_segments(G, df_layout):
        xs = [direction * height for _, height in points]
        ys = [n - 1 - pos for pos, _ in points]
        ax.plot(xs, ys, color=color, linewidth=1.2)

    ax.set_ylim(-0.5, n - 0.5)
    ax.set_yticks([])
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.spines["left"].set_visible(False)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def create_tanglegram_image(
    tree_left: MergeTree,
    tree_right: MergeTree,
    title: Optional[str] = None,
    dpi: int = 120,
) -> str:
    """
    Render a tanglegram of two trees and return it as base64 PNG.

    Parameters
    ----------
    tree_left, tree_right
        Merge trees over the same labels.
    title
        Optional title drawn above the figure.
    dpi
        Dots per inch for the generated PNG.

    Returns
    -------
    str
        Base64 encoded PNG, usable as
            <img src="data:image/png;base64,{{ base64_string }}" />
    """
    check_same_leaves(tree_left, tree_right)

    n = tree_left.n_leaves
    left_labels = tree_left.ordered_labels()
    right_labels = tree_right.ordered_labels()
    right_position = {label: i for i, label in enumerate(right_labels)}

    fig, (ax_left, ax_mid, ax_right) = plt.subplots(
        1,
        3,
        figsize=(10, max(3.0, 0.3 * n + 1.0)),
        dpi=dpi,
        gridspec_kw={"width_ratios": [3, 2, 3], "wspace": 0.02},
    )

    _draw_tree(ax_left, tree_left, direction=-1.0, color="#1f77b4")
    _draw_tree(ax_right, tree_right, direction=1.0, color="#ff7f0e")

    ax_left.set_xlabel("Height")
    ax_right.set_xlabel("Height")
    ax_left.set_title(f"{tree_left.criterion.capitalize()} linkage", fontsize=10)
    ax_right.set_title(f"{tree_right.criterion.capitalize()} linkage", fontsize=10)

    # Middle panel: leaf labels on each side and connectors between them
    ax_mid.set_xlim(0.0, 1.0)
    ax_mid.set_ylim(-0.5, n - 0.5)
    ax_mid.axis("off")

    for i, label in enumerate(left_labels):
        y_left = n - 1 - i
        y_right = n - 1 - right_position[label]
        ax_mid.text(0.0, y_left, label, ha="left", va="center", fontsize=8)
        ax_mid.text(1.0, y_right, label, ha="right", va="center", fontsize=8)
        line_color = "#7f7f7f" if y_left == y_right else "#d62728"
        ax_mid.plot([0.3, 0.7], [y_left, y_right], color=line_color, linewidth=0.8)

    if title:
        fig.suptitle(title, fontsize=12)

    buffer = io.BytesIO()
    fig.savefig(buffer, format="png", bbox_inches="tight")
    plt.close(fig)
    buffer.seek(0)

    base64_str = base64.b64encode(buffer.read()).decode("ascii")

    logger.info("Generated tanglegram image for %d leaves", n)

    return base64_str
