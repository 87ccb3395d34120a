from __future__ import annotations

"""
Preprocessing utilities for the nutristream project.

This module is responsible for:

- Checking raw tables against their declared column schema
- Recoding sentinel missing values and converting columns to numeric values
- Filtering rows and sparse columns, aggregating observations by group
- Dropping incomplete records
- Standardizing features to zero mean and unit sample variance

The main public entry points are `build_food_matrix` and
`build_stream_matrix`, which turn a raw table into an Observation Matrix
(a numeric DataFrame with one labelled row per observation), and
`standardize`, which both analyses apply before the numerical core.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

import logging
import numpy as np
import pandas as pd

from .config import AnalysisConfig, TableSchema
from .errors import DegenerateFeatureError, InsufficientDataError, SchemaError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------


def validate_schema(
    df: pd.DataFrame,
    schema: TableSchema,
    required: Optional[Iterable[str]] = None,
) -> None:
    """
    Check that a raw table carries the columns its schema requires.

    Parameters
    ----------
    df
        Raw table as returned by data_io.
    schema
        TableSchema describing the table.
    required
        Column names that must be present. Defaults to every column in the
        schema. Each required column must also be declared in the schema.

    Raises
    ------
    SchemaError
        If any required column is missing from df.
    ValueError
        If a required column is not declared in the schema.
    """
    required_cols = list(schema.column_names() if required is None else required)

    undeclared = [c for c in required_cols if c not in schema.column_names()]
    if undeclared:
        raise ValueError(
            f"Columns not declared in schema '{schema.name}': {', '.join(undeclared)}"
        )

    missing = [c for c in required_cols if c not in df.columns]
    if missing:
        raise SchemaError(schema.name, missing)

    extra = [c for c in df.columns if c not in schema.column_names()]
    if extra:
        logger.debug(
            "Table '%s' has %d undeclared columns that will be ignored: %s",
            schema.name,
            len(extra),
            ", ".join(map(str, extra)),
        )


# ---------------------------------------------------------------------------
# Basic cleaning
# ---------------------------------------------------------------------------


def coerce_columns_to_numeric(
    df: pd.DataFrame,
    columns: List[str],
) -> pd.DataFrame:
    """
    Ensure that the given columns are numeric, coercing invalid values to NaN.

    Returns a copy of df with the columns converted to a numeric dtype.
    """
    df = df.copy()

    for col in columns:
        before_invalid = df[col].isna().sum()
        df[col] = pd.to_numeric(df[col], errors="coerce")
        after_invalid = df[col].isna().sum()

        if after_invalid > before_invalid:
            logger.warning(
                "Column '%s': coerced %d additional non-numeric values to NaN",
                col,
                after_invalid - before_invalid,
            )

    return df


def recode_sentinels(
    df: pd.DataFrame,
    columns: List[str],
    sentinel: float,
) -> pd.DataFrame:
    """
    Replace a sentinel value marking missing data with NaN.

    The stream chemistry data records absent measurements as -999. Only the
    listed columns are touched.
    """
    df = df.copy()
    total = 0

    for col in columns:
        mask = df[col] == sentinel
        n_hits = int(mask.sum())
        if n_hits:
            df[col] = df[col].mask(mask, np.nan)
            total += n_hits

    logger.info("Recoded %d sentinel values (%s) to NaN", total, sentinel)

    return df


def filter_rows(
    df: pd.DataFrame,
    column: str,
    allowed: Sequence[str],
) -> pd.DataFrame:
    """Keep only rows whose value in `column` is one of `allowed`."""
    mask = df[column].isin(list(allowed))
    kept = df.loc[mask].copy()

    logger.info(
        "Filtered on %s in [%s]: kept %d of %d rows",
        column,
        ", ".join(map(str, allowed)),
        len(kept),
        len(df),
    )

    if kept.empty:
        logger.warning("No rows left after filtering on column '%s'", column)

    return kept


def drop_sparse_columns(
    df: pd.DataFrame,
    columns: List[str],
    max_missing_fraction: float,
) -> Tuple[pd.DataFrame, List[str]]:
    """
    Drop columns whose share of missing values exceeds a threshold.

    Returns
    -------
    (df, kept_columns)
        A copy of df without the sparse columns, and the subset of
        `columns` that survived, in their original order.
    """
    if not 0.0 <= max_missing_fraction <= 1.0:
        raise ValueError("max_missing_fraction must lie in [0, 1]")

    if len(df) == 0:
        return df.copy(), list(columns)

    missing_fraction = df[columns].isna().mean()
    sparse = [c for c in columns if missing_fraction[c] > max_missing_fraction]
    kept = [c for c in columns if c not in sparse]

    for col in sparse:
        logger.warning(
            "Dropping column '%s': %.1f%% of values missing",
            col,
            100.0 * float(missing_fraction[col]),
        )

    return df.drop(columns=sparse), kept


def aggregate_by_group(
    df: pd.DataFrame,
    group_column: str,
    columns: List[str],
) -> pd.DataFrame:
    """
    Average numeric columns within each group, skipping missing values.

    The result is indexed by the group value (sorted) and a group whose
    values in a column are all missing keeps NaN there.
    """
    grouped = df.groupby(group_column, sort=True)[columns].mean()

    logger.info(
        "Aggregated %d rows into %d groups by '%s'",
        len(df),
        len(grouped),
        group_column,
    )

    return grouped


def drop_incomplete_rows(
    df: pd.DataFrame,
    columns: List[str],
) -> Tuple[pd.DataFrame, int]:
    """
    Drop rows that have missing values in any of the specified columns.

    Returns a new DataFrame and the number of dropped rows.
    """
    mask_valid = df[columns].notna().all(axis=1)
    dropped = int((~mask_valid).sum())

    if dropped > 0:
        logger.warning(
            "Dropping %d rows with missing values in feature columns", dropped
        )

    return df.loc[mask_valid].copy(), dropped


def _make_unique_labels(labels: Iterable) -> List[str]:
    """Suffix repeated labels with ' (2)', ' (3)', ... so they can be an index."""
    labels = [str(label) for label in labels]
    taken = set(labels)
    used = set()
    unique = []
    for label in labels:
        candidate = label
        count = 1
        # A suffixed name must not collide with a label that occurs verbatim
        while candidate in used or (candidate != label and candidate in taken):
            count += 1
            candidate = f"{label} ({count})"
        used.add(candidate)
        unique.append(candidate)
    return unique


# ---------------------------------------------------------------------------
# Standardization
# ---------------------------------------------------------------------------


def standardize(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rescale each column to zero mean and unit sample standard deviation.

    Each value becomes (x - mean) / std, where std uses n - 1 degrees of
    freedom.

    Parameters
    ----------
    df
        Observation Matrix: numeric columns, no missing values.

    Returns
    -------
    DataFrame
        A new DataFrame with the same index and columns.

    Raises
    ------
    InsufficientDataError
        If df has fewer than two rows.
    DegenerateFeatureError
        If a column holds a single repeated value.
    ValueError
        If there are no columns or the values are not all finite.
    """
    n_rows = len(df)
    if n_rows < 2:
        raise InsufficientDataError(n_rows, 2, "Standardization")
    if df.shape[1] == 0:
        raise ValueError("No columns provided for standardization")

    values = df.to_numpy(dtype=float)
    if not np.isfinite(values).all():
        raise ValueError("Observation matrix contains missing or infinite values")

    for j, col in enumerate(df.columns):
        if values[:, j].max() == values[:, j].min():
            raise DegenerateFeatureError(str(col))

    mean = values.mean(axis=0)
    std = values.std(axis=0, ddof=1)
    scaled = (values - mean) / std

    df_std = pd.DataFrame(scaled, index=df.index, columns=df.columns)

    logger.info(
        "Standardized %d columns for %d rows",
        df_std.shape[1],
        n_rows,
    )

    return df_std


# ---------------------------------------------------------------------------
# High level entry points
# ---------------------------------------------------------------------------


def build_food_matrix(
    df_food: pd.DataFrame,
    cfg: AnalysisConfig,
) -> pd.DataFrame:
    """
    Build the nutrient Observation Matrix used for PCA.

    This function:

    1. Validates the table against cfg.food_schema
    2. Keeps rows from the configured food groups (if any)
    3. Coerces the nutrient feature columns to numeric
    4. Drops rows with missing nutrient values
    5. Indexes rows by the configured label column

    Returns
    -------
    DataFrame
        Shape (n_foods, n_features), columns ordered as cfg.food_features.
    """
    schema = cfg.food_schema
    features = list(cfg.food_features)
    if not features:
        raise ValueError("No food features configured")

    not_numeric = [c for c in features if c not in schema.numeric_columns()]
    if not_numeric:
        raise ValueError(
            f"Food features must be numeric schema columns: {', '.join(not_numeric)}"
        )

    validate_schema(
        df_food,
        schema,
        required=features + [cfg.food_label_column, cfg.food_group_column],
    )

    df = df_food
    if cfg.food_groups:
        df = filter_rows(df, cfg.food_group_column, cfg.food_groups)

    df = coerce_columns_to_numeric(df, features)
    df, dropped = drop_incomplete_rows(df, features)
    if dropped:
        logger.info("Dropped %d foods with incomplete nutrient data", dropped)

    matrix = df[features].copy()
    matrix.index = pd.Index(
        _make_unique_labels(df[cfg.food_label_column]),
        name=cfg.food_label_column,
    )

    logger.info(
        "Built food matrix with %d rows and %d features",
        len(matrix),
        len(features),
    )

    return matrix


def build_stream_matrix(
    df_stream: pd.DataFrame,
    cfg: AnalysisConfig,
) -> pd.DataFrame:
    """
    Build the per-site chemistry Observation Matrix used for clustering.

    This function:

    1. Validates the table against cfg.stream_schema
    2. Coerces chemistry columns to numeric and recodes the sentinel to NaN
    3. Drops chemistry columns that are mostly missing
    4. Averages each remaining column per site, ignoring missing values
    5. Drops sites that still lack a value in any column

    Returns
    -------
    DataFrame
        Shape (n_sites, n_kept_columns), indexed by site.
    """
    schema = cfg.stream_schema
    numeric = schema.numeric_columns()

    validate_schema(df_stream, schema, required=numeric + [cfg.stream_group_column])

    df = coerce_columns_to_numeric(df_stream, numeric)
    df = recode_sentinels(df, numeric, cfg.missing_sentinel)

    df, kept = drop_sparse_columns(df, numeric, cfg.max_missing_fraction)
    if not kept:
        raise ValueError("Every chemistry column was dropped as too sparse")

    per_site = aggregate_by_group(df, cfg.stream_group_column, kept)
    per_site, dropped = drop_incomplete_rows(per_site, kept)
    if dropped:
        logger.info("Dropped %d sites with incomplete chemistry means", dropped)

    per_site.index = per_site.index.map(str)

    logger.info(
        "Built stream matrix with %d sites and %d chemistry columns",
        len(per_site),
        len(kept),
    )

    return per_site
