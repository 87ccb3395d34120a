from __future__ import annotations

"""
Distance utilities for the nutristream project.

This module is responsible for constructing the pairwise dissimilarity matrix
used by the hierarchical clustering step.

Responsibilities:
- Take an Observation Matrix (rows = observations, cols = features)
- Compute Euclidean distances with scikit-learn from coordinate differences
  (metric="minkowski", p=2), which stays exact to double precision for raw
  data far from the origin
- Guarantee exact symmetry and an exactly zero diagonal

Main entry point:
- build_distance_matrix(df, columns=None)
"""

from typing import List, Optional, Union

import logging
import numpy as np
import pandas as pd
from sklearn.metrics import pairwise_distances

from .errors import InsufficientDataError

logger = logging.getLogger(__name__)


def symmetrize(dist_matrix: np.ndarray) -> np.ndarray:
    """
    Mirror the strict upper triangle of a square matrix onto the lower one.

    The result is exactly symmetric and has an exactly zero diagonal, whatever
    round-off the distance routine left in the lower triangle.
    """
    if dist_matrix.ndim != 2 or dist_matrix.shape[0] != dist_matrix.shape[1]:
        raise ValueError("dist_matrix must be a square 2D array")

    upper = np.triu(dist_matrix, k=1)
    return upper + upper.T


def build_distance_matrix(
    data: Union[pd.DataFrame, np.ndarray],
    columns: Optional[List[str]] = None,
) -> np.ndarray:
    """
    Build the Euclidean distance matrix between observations.

    Parameters
    ----------
    data
        Observation Matrix, standardized or raw. A DataFrame or a 2D array.
    columns
        Optional subset of DataFrame columns defining the feature space.
        Defaults to all columns.

    Returns
    -------
    np.ndarray
        A 2D array of shape (n_samples, n_samples) where entry (i, j) is
        sqrt(sum_k (x_ik - x_jk)^2).
    """
    if isinstance(data, pd.DataFrame):
        frame = data if columns is None else data[columns]
        X = frame.to_numpy(dtype=float)
    else:
        if columns is not None:
            raise ValueError("columns can only be given with a DataFrame")
        X = np.asarray(data, dtype=float)

    if X.ndim != 2:
        raise ValueError("Observation matrix must be two dimensional")

    n_samples, n_features = X.shape
    if n_samples == 0:
        raise InsufficientDataError(0, 1, "Distance computation")
    if n_features == 0:
        raise ValueError("Observation matrix has no feature columns")
    if not np.isfinite(X).all():
        raise ValueError("Observation matrix contains missing or infinite values")

    logger.info(
        "Computing Euclidean distances for %d observations with %d features",
        n_samples,
        n_features,
    )

    # Coordinate differences, not the |x|^2 - 2x.y + |y|^2 expansion
    dist_matrix = symmetrize(pairwise_distances(X, metric="minkowski", p=2))

    logger.debug(
        "Distance matrix computed: shape (%d, %d), max %.4f",
        dist_matrix.shape[0],
        dist_matrix.shape[1],
        float(dist_matrix.max()),
    )

    return dist_matrix
