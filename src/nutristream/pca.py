from __future__ import annotations

"""
Principal component analysis for the nutristream project.

This module computes the principal components of a standardized Observation
Matrix through an eigendecomposition of its sample covariance matrix.

Conventions that make results reproducible across runs and implementations:

- Components are ordered by descending eigenvalue. numpy.linalg.eigh returns
  eigenvalues in ascending order; a stable sort on the negated values keeps
  equal eigenvalues in that returned order.
- Eigenvectors are sign ambiguous. Each loading vector is flipped so that its
  largest magnitude entry is positive (the first one if several tie).
- Round-off can make eigenvalues of a singular covariance matrix slightly
  negative; those are clipped to zero.

Main entry point:
- run_pca(df_std) -> PcaResult
"""

from dataclasses import dataclass

import logging
import numpy as np
import pandas as pd

from .errors import DegenerateFeatureError, InsufficientDataError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PcaResult:
    """
    Principal components of a standardized matrix.

    Attributes
    ----------
    loadings
        DataFrame of shape (n_features, n_components). Column "PCk" is the
        unit norm loading vector of component k.
    eigenvalues
        Series of covariance eigenvalues (component variances), indexed
        like the loadings columns.
    explained_variance_ratio
        Series of proportions of total variance, summing to 1.
    scores
        DataFrame of shape (n_observations, n_components) with each
        observation projected on each component.
    """

    loadings: pd.DataFrame
    eigenvalues: pd.Series
    explained_variance_ratio: pd.Series
    scores: pd.DataFrame

    @property
    def n_components(self) -> int:
        return self.loadings.shape[1]

    @property
    def component_names(self) -> list:
        return list(self.loadings.columns)

    def cumulative_variance(self) -> pd.Series:
        return self.explained_variance_ratio.cumsum()

    def component(self, k: int) -> pd.Series:
        """Return the loading vector of the k-th component (1-based)."""
        if not 1 <= k <= self.n_components:
            raise IndexError(f"Component {k} out of range 1..{self.n_components}")
        return self.loadings.iloc[:, k - 1]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _component_names(p: int) -> list:
    return [f"PC{k}" for k in range(1, p + 1)]


def _normalize_signs(vectors: np.ndarray) -> np.ndarray:
    """
    Flip each column so that its largest magnitude entry is positive.

    Magnitudes are rounded to 12 decimals first, so entries that tie up to
    round-off count as equal and the first of them decides the sign.
    """
    vectors = vectors.copy()
    pivot_rows = np.argmax(np.round(np.abs(vectors), 12), axis=0)
    signs = np.sign(vectors[pivot_rows, np.arange(vectors.shape[1])])
    signs[signs == 0] = 1.0
    return vectors * signs


def _check_input(df_std: pd.DataFrame) -> np.ndarray:
    n_rows = len(df_std)
    if n_rows < 2:
        raise InsufficientDataError(n_rows, 2, "PCA")
    if df_std.shape[1] == 0:
        raise ValueError("PCA needs at least one feature column")

    values = df_std.to_numpy(dtype=float)
    if not np.isfinite(values).all():
        raise ValueError("PCA input contains missing or infinite values")

    for j, col in enumerate(df_std.columns):
        if values[:, j].max() == values[:, j].min():
            raise DegenerateFeatureError(str(col))

    return values


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def run_pca(df_std: pd.DataFrame) -> PcaResult:
    """
    Compute all principal components of a standardized matrix.

    Parameters
    ----------
    df_std
        Standardized Observation Matrix of shape (n, p), usually the output
        of preprocessing.standardize. Fewer rows than columns is allowed;
        the trailing components then have zero variance.

    Returns
    -------
    PcaResult
        Exactly p components ordered by descending explained variance.

    Raises
    ------
    InsufficientDataError
        If df_std has fewer than two rows.
    DegenerateFeatureError
        If a column has zero variance.
    """
    values = _check_input(df_std)
    n, p = values.shape

    logger.info("Running PCA on %d observations and %d features", n, p)

    centered = values - values.mean(axis=0)
    cov = (centered.T @ centered) / (n - 1)
    # Exact symmetry keeps eigh on the same code path for identical input
    cov = (cov + cov.T) / 2.0

    eigvals, eigvecs = np.linalg.eigh(cov)

    order = np.argsort(-eigvals, kind="stable")
    eigvals = np.clip(eigvals[order], a_min=0.0, a_max=None)
    eigvecs = _normalize_signs(eigvecs[:, order])

    total = float(eigvals.sum())
    if total <= 0.0:
        # Only reachable when every column is constant, which _check_input rejects
        raise RuntimeError("Covariance matrix has zero total variance")
    ratio = eigvals / total

    names = _component_names(p)
    features = list(df_std.columns)

    loadings = pd.DataFrame(eigvecs, index=features, columns=names)
    scores = pd.DataFrame(centered @ eigvecs, index=df_std.index, columns=names)

    result = PcaResult(
        loadings=loadings,
        eigenvalues=pd.Series(eigvals, index=names, name="eigenvalue"),
        explained_variance_ratio=pd.Series(ratio, index=names, name="proportion"),
        scores=scores,
    )

    logger.info(
        "PCA complete: PC1 explains %.1f%%, first two explain %.1f%%",
        100.0 * ratio[0],
        100.0 * float(ratio[: min(2, p)].sum()),
    )

    return result
