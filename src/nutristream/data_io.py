from __future__ import annotations

"""
Data loading utilities for the nutristream project.

This module is responsible for reading the raw input tables from disk and
returning pandas DataFrames that the preprocessing step can consume.

Responsibilities:
- Load a table from a CSV or Excel file based on its extension
- Load the USDA food nutrient table
- Load the SBC LTER stream chemistry table

All file paths are taken from AnalysisConfig in config.py. No cleaning
happens here; see preprocessing.py for that.
"""

from pathlib import Path

import logging
import pandas as pd

from .config import AnalysisConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Low level loaders
# ---------------------------------------------------------------------------


def load_table(path: Path) -> pd.DataFrame:
    """
    Load a table from an Excel or CSV file based on its extension.

    Supported formats:
      - .xlsx / .xls via pandas.read_excel
      - .csv via pandas.read_csv

    Raises FileNotFoundError if the file does not exist, and ValueError for
    unsupported suffixes.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    suffix = path.suffix.lower()

    if suffix in {".xlsx", ".xls"}:
        logger.info("Loading Excel table from %s", path)
        return pd.read_excel(path)
    if suffix == ".csv":
        logger.info("Loading CSV table from %s", path)
        return pd.read_csv(path)

    raise ValueError(f"Unsupported data file extension '{suffix}' for {path}")


# ---------------------------------------------------------------------------
# Data set loaders
# ---------------------------------------------------------------------------


def load_food_table(cfg: AnalysisConfig) -> pd.DataFrame:
    """Load the USDA food nutrient table defined in the configuration."""
    df = load_table(cfg.food_data_path)

    logger.info("Loaded food table with %d rows and %d columns from %s",
                len(df), df.shape[1], cfg.food_data_path)

    return df


def load_stream_table(cfg: AnalysisConfig) -> pd.DataFrame:
    """
    Load the stream chemistry table defined in the configuration.

    Sentinel values are left in place; preprocessing.recode_sentinels turns
    them into missing values.
    """
    df = load_table(cfg.stream_data_path)

    logger.info("Loaded stream chemistry table with %d rows and %d columns from %s",
                len(df), df.shape[1], cfg.stream_data_path)

    return df
