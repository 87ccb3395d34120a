"""
Report builder for the nutristream project.

This module provides the top level pipelines and wraps their results into a
standalone HTML document.

Food nutrient PCA:
1. Build the nutrient Observation Matrix
2. Standardize it
3. Run PCA
4. Build the biplot and scree figures

Stream chemistry clustering:
1. Build the per-site Observation Matrix
2. Standardize it
3. Compute Euclidean distances and cluster under complete and single linkage
4. Score entanglement between the two trees and untangle one side
5. Build dendrogram figures and a tanglegram image

Main public entry point:
    build_report_html(cfg: AnalysisConfig | None = None) -> str
"""

import html
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import pandas as pd
import plotly.graph_objs as go

from .clustering import MergeTree, agglomerate, cut_tree
from .config import AnalysisConfig
from .data_io import load_food_table, load_stream_table
from .entanglement import UntangleResult, untangle_step_one_side
from .figure import build_biplot_figure, build_dendrogram_figure, build_scree_figure
from .pca import PcaResult, run_pca
from .preprocessing import build_food_matrix, build_stream_matrix, standardize
from .similarity import build_distance_matrix
from .tanglegram import create_tanglegram_image

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pipeline results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FoodPcaReport:
    """Intermediate tables and the PCA result of the food pipeline."""

    matrix: pd.DataFrame
    standardized: pd.DataFrame
    result: PcaResult


@dataclass(frozen=True)
class StreamClusterReport:
    """Intermediate tables, trees and comparison of the stream pipeline."""

    matrix: pd.DataFrame
    standardized: pd.DataFrame
    distances: pd.DataFrame
    trees: Dict[str, MergeTree]
    untangled: UntangleResult
    clusters: pd.DataFrame


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------


def run_food_pca(df_food: pd.DataFrame, cfg: AnalysisConfig) -> FoodPcaReport:
    """Run the food nutrient PCA pipeline on a raw food table."""
    matrix = build_food_matrix(df_food, cfg)
    logger.info("Food pipeline: matrix shape %s", matrix.shape)

    standardized = standardize(matrix)
    result = run_pca(standardized)

    return FoodPcaReport(matrix=matrix, standardized=standardized, result=result)


def run_stream_clustering(df_stream: pd.DataFrame, cfg: AnalysisConfig) -> StreamClusterReport:
    """Run the stream chemistry clustering pipeline on a raw chemistry table."""
    matrix = build_stream_matrix(df_stream, cfg)
    logger.info("Stream pipeline: matrix shape %s", matrix.shape)

    standardized = standardize(matrix)

    dist_matrix = build_distance_matrix(standardized)
    labels = list(standardized.index)

    trees = {
        criterion: agglomerate(dist_matrix, labels=labels, criterion=criterion)
        for criterion in cfg.linkage_criteria
    }
    first, second = (trees[c] for c in cfg.linkage_criteria[:2])

    untangled = untangle_step_one_side(
        first,
        second,
        norm=cfg.entanglement_norm,
        max_passes=cfg.untangle_max_passes,
    )

    k = min(cfg.n_clusters, len(labels))
    clusters = pd.DataFrame(
        {criterion: cut_tree(tree, k) for criterion, tree in trees.items()}
    )

    return StreamClusterReport(
        matrix=matrix,
        standardized=standardized,
        distances=pd.DataFrame(dist_matrix, index=labels, columns=labels),
        trees=trees,
        untangled=untangled,
        clusters=clusters,
    )


# ---------------------------------------------------------------------------
# HTML template
# ---------------------------------------------------------------------------

_HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>{title}</title>
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <!-- Plotly from CDN -->
  <script src="https://cdn.plot.ly/plotly-2.27.0.min.js"></script>
  <style>
    body {{
      margin: 0 auto;
      max-width: 1100px;
      padding: 16px 24px;
      font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI",
                   sans-serif;
      color: #1b1e28;
    }}
    h1 {{ font-size: 24px; }}
    h2 {{ font-size: 20px; margin-top: 36px; border-bottom: 1px solid #ddd; }}
    table {{ border-collapse: collapse; font-size: 13px; margin: 8px 0 16px; }}
    th, td {{ border: 1px solid #ddd; padding: 3px 8px; text-align: right; }}
    .note {{ color: #555; font-size: 14px; }}
    .tanglegram img {{ max-width: 100%; height: auto; }}
  </style>
</head>
<body>
  <h1>{title}</h1>
{sections}
</body>
</html>
"""


def _figure_div(fig: go.Figure) -> str:
    return fig.to_html(full_html=False, include_plotlyjs=False)


def _table(df: pd.DataFrame, digits: int = 3) -> str:
    return df.to_html(float_format=lambda v: f"{v:.{digits}f}", border=0)


def _food_section(report: FoodPcaReport, cfg: AnalysisConfig) -> str:
    result = report.result
    variance = pd.DataFrame(
        {
            "eigenvalue": result.eigenvalues,
            "proportion": result.explained_variance_ratio,
            "cumulative": result.cumulative_variance(),
        }
    )
    loadings = result.loadings.iloc[:, : min(3, result.n_components)].copy()
    loadings.index = [cfg.feature_label(str(c)) for c in loadings.index]

    parts = [
        "  <h2>Principal components of food nutrients</h2>",
        f'  <p class="note">{len(report.matrix)} foods, '
        f"{report.matrix.shape[1]} standardized nutrients.</p>",
        _figure_div(build_biplot_figure(result, cfg)),
        _figure_div(build_scree_figure(result)),
        "  <h3>Variance explained</h3>",
        _table(variance),
        "  <h3>Loadings</h3>",
        _table(loadings),
    ]
    return "\n".join(parts)


def _stream_section(report: StreamClusterReport, cfg: AnalysisConfig) -> str:
    untangled = report.untangled
    image = create_tanglegram_image(
        untangled.tree_a,
        untangled.tree_b,
        title="Tanglegram after one-sided untangling",
    )

    parts = [
        "  <h2>Hierarchical clustering of stream chemistry</h2>",
        f'  <p class="note">{len(report.matrix)} sites, '
        f"{report.matrix.shape[1]} standardized chemistry means: "
        f"{html.escape(', '.join(cfg.feature_label(c) for c in report.matrix.columns))}.</p>",
    ]
    for tree in report.trees.values():
        parts.append(_figure_div(build_dendrogram_figure(tree)))

    parts.extend(
        [
            "  <h3>Tree comparison</h3>",
            f'  <p class="note">Entanglement {untangled.entanglement_before:.3f} before '
            f"and {untangled.entanglement_after:.3f} after untangling "
            f"({untangled.n_rotations} rotations).</p>",
            f'  <div class="tanglegram"><img src="data:image/png;base64,{image}" '
            'alt="tanglegram" /></div>',
            f"  <h3>Clusters at k = {int(report.clusters.max().max())}</h3>",
            report.clusters.to_html(border=0),
            "  <h3>Site chemistry means</h3>",
            _table(report.matrix, digits=2),
        ]
    )
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render_report(
    food: Optional[FoodPcaReport],
    stream: Optional[StreamClusterReport],
    cfg: AnalysisConfig,
) -> str:
    """Assemble the HTML document from whichever pipeline results are given."""
    sections = []
    if food is not None:
        sections.append(_food_section(food, cfg))
    if stream is not None:
        sections.append(_stream_section(stream, cfg))
    if not sections:
        raise ValueError("Nothing to report: no pipeline results given")

    return _HTML_TEMPLATE.format(
        title=html.escape(cfg.report_title),
        sections="\n".join(sections),
    )


def build_report_html(cfg: Optional[AnalysisConfig] = None) -> str:
    """
    Run both pipelines on the configured data files and return the report.

    Parameters
    ----------
    cfg
        Optional AnalysisConfig. If None, a default config is created.

    Returns
    -------
    str
        Complete HTML suitable for writing directly to a file.
    """
    if cfg is None:
        cfg = AnalysisConfig()

    logger.info("Starting report build with config: %s", cfg)

    food = run_food_pca(load_food_table(cfg), cfg)
    stream = run_stream_clustering(load_stream_table(cfg), cfg)
    document = render_report(food, stream, cfg)

    logger.info("Report HTML build complete")

    return document
