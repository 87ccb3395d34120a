"""
nutristream package.

This package contains the data pipelines and report logic for two
exploratory analyses: a principal component analysis of USDA food nutrient
data and a hierarchical clustering of Santa Barbara Coastal LTER stream
chemistry. It is organized into small modules for:

- loading raw tables (data_io)
- schema checks, cleaning, aggregation and standardization (preprocessing)
- principal component analysis (pca)
- Euclidean distance matrices (similarity)
- agglomerative clustering and merge trees (clustering)
- comparing and untangling two merge trees (entanglement)
- graph views and layouts of merge trees (graph)
- Plotly figure construction (figure)
- tanglegram image generation (tanglegram)
- building a complete HTML report (report)

The main public entry point is `build_report_html`, which runs both
pipelines and returns an HTML string ready to write to disk.
"""

from .clustering import MergeTree, agglomerate, cluster_observations, cut_tree
from .entanglement import entanglement, untangle_step_one_side
from .pca import PcaResult, run_pca
from .preprocessing import standardize
from .report import build_report_html
from .similarity import build_distance_matrix

__all__ = [
    "MergeTree",
    "PcaResult",
    "agglomerate",
    "build_distance_matrix",
    "build_report_html",
    "cluster_observations",
    "cut_tree",
    "entanglement",
    "run_pca",
    "standardize",
    "untangle_step_one_side",
]
