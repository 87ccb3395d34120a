from __future__ import annotations

"""
Configuration and shared metadata for the nutristream project.

This module defines:

- Paths to data files relative to the project root
- Column schemas for the USDA food nutrient and stream chemistry tables
- Default pipeline parameters such as linkage criteria and feature subsets

Most code in the package should import configuration values from here rather
than hard coding paths, column names or constants.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

# Project root is two levels up from this file.
#   project_root/
#     src/
#       nutristream/
#         config.py
ROOT_DIR: Path = Path(__file__).resolve().parents[2]
DATA_DIR: Path = ROOT_DIR / "data"

# Default data file locations
DEFAULT_FOOD_DATA_PATH: Path = DATA_DIR / "usda_nutrients.csv"
DEFAULT_STREAM_DATA_PATH: Path = DATA_DIR / "sbc_lter_registered_stream_chemistry.csv"
DEFAULT_REPORT_PATH: Path = ROOT_DIR / "report.html"


# ---------------------------------------------------------------------------
# Column schema
# ---------------------------------------------------------------------------

NUMERIC = "numeric"
CATEGORICAL = "categorical"


@dataclass(frozen=True)
class ColumnSpec:
    """Declared type and display metadata for one input column."""

    name: str               # Column name as it appears in the raw table
    kind: str               # numeric or categorical
    label: str = ""         # Human friendly name used in figures


@dataclass(frozen=True)
class TableSchema:
    """
    Explicit description of an input table.

    The schema is built once and checked before any data reaches the
    numerical core, so columns are selected by name and declared kind
    rather than guessed from their dtype.
    """

    name: str
    columns: Tuple[ColumnSpec, ...]

    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def numeric_columns(self) -> List[str]:
        return [c.name for c in self.columns if c.kind == NUMERIC]

    def label_for(self, column: str) -> str:
        """Return the display label for a column, falling back to its name."""
        for spec in self.columns:
            if spec.name == column:
                return spec.label or spec.name
        return column


FOOD_SCHEMA = TableSchema(
    name="usda_nutrients",
    columns=(
        ColumnSpec("ID", CATEGORICAL),
        ColumnSpec("FoodGroup", CATEGORICAL, "Food group"),
        ColumnSpec("ShortDescrip", CATEGORICAL, "Short description"),
        ColumnSpec("Descrip", CATEGORICAL, "Description"),
        ColumnSpec("Energy_kcal", NUMERIC, "Energy (kcal)"),
        ColumnSpec("Protein_g", NUMERIC, "Protein (g)"),
        ColumnSpec("Fat_g", NUMERIC, "Fat (g)"),
        ColumnSpec("Carb_g", NUMERIC, "Carbohydrate (g)"),
        ColumnSpec("Sugar_g", NUMERIC, "Sugar (g)"),
        ColumnSpec("Fiber_g", NUMERIC, "Fiber (g)"),
        ColumnSpec("VitA_mcg", NUMERIC, "Vitamin A (mcg)"),
        ColumnSpec("VitB12_mcg", NUMERIC, "Vitamin B12 (mcg)"),
        ColumnSpec("VitC_mg", NUMERIC, "Vitamin C (mg)"),
        ColumnSpec("VitE_mg", NUMERIC, "Vitamin E (mg)"),
        ColumnSpec("Folate_mcg", NUMERIC, "Folate (mcg)"),
        ColumnSpec("Niacin_mg", NUMERIC, "Niacin (mg)"),
        ColumnSpec("Riboflavin_mg", NUMERIC, "Riboflavin (mg)"),
        ColumnSpec("Thiamin_mg", NUMERIC, "Thiamin (mg)"),
        ColumnSpec("Calcium_mg", NUMERIC, "Calcium (mg)"),
        ColumnSpec("Copper_mcg", NUMERIC, "Copper (mcg)"),
        ColumnSpec("Iron_mg", NUMERIC, "Iron (mg)"),
        ColumnSpec("Magnesium_mg", NUMERIC, "Magnesium (mg)"),
        ColumnSpec("Manganese_mg", NUMERIC, "Manganese (mg)"),
        ColumnSpec("Phosphorus_mg", NUMERIC, "Phosphorus (mg)"),
        ColumnSpec("Selenium_mcg", NUMERIC, "Selenium (mcg)"),
        ColumnSpec("Zinc_mg", NUMERIC, "Zinc (mg)"),
    ),
)

STREAM_SCHEMA = TableSchema(
    name="sbc_stream_chemistry",
    columns=(
        ColumnSpec("site_code", CATEGORICAL, "Site"),
        ColumnSpec("timestamp_local", CATEGORICAL, "Sample time"),
        ColumnSpec("nh4_uM", NUMERIC, "Ammonium (uM)"),
        ColumnSpec("no3_uM", NUMERIC, "Nitrate (uM)"),
        ColumnSpec("po4_uM", NUMERIC, "Phosphorus (uM)"),
        ColumnSpec("tdn_uM", NUMERIC, "Total dissolved nitrogen (uM)"),
        ColumnSpec("tdp_uM", NUMERIC, "Total dissolved phosphorus (uM)"),
        ColumnSpec("tpc_uM", NUMERIC, "Total particulate carbon (uM)"),
        ColumnSpec("tpn_uM", NUMERIC, "Total particulate nitrogen (uM)"),
        ColumnSpec("tpp_uM", NUMERIC, "Total particulate phosphorus (uM)"),
        ColumnSpec("tss_mgperLiter", NUMERIC, "Total suspended solids (mg/L)"),
        ColumnSpec("spec_cond_uSpercm", NUMERIC, "Specific conductivity (uS/cm)"),
    ),
)


# ---------------------------------------------------------------------------
# Food PCA defaults
# ---------------------------------------------------------------------------

DEFAULT_FOOD_GROUPS: List[str] = [
    "Vegetables and Vegetable Products",
]

# Nutrients used as PCA features
DEFAULT_FOOD_FEATURES: List[str] = [
    "Energy_kcal",
    "Protein_g",
    "Fat_g",
    "Carb_g",
    "Sugar_g",
    "Fiber_g",
    "VitA_mcg",
    "VitC_mg",
    "VitE_mg",
    "Iron_mg",
    "Calcium_mg",
]


# ---------------------------------------------------------------------------
# Stream clustering defaults
# ---------------------------------------------------------------------------

# Value used by the SBC LTER data set to mark missing measurements
MISSING_SENTINEL: float = -999.0

# Numeric columns with a larger share of missing values are dropped before
# aggregation
DEFAULT_MAX_MISSING_FRACTION: float = 0.5

SUPPORTED_LINKAGES: Tuple[str, ...] = ("complete", "single")

# Exponent applied to leaf position differences when scoring entanglement
DEFAULT_ENTANGLEMENT_NORM: float = 1.5

DEFAULT_N_CLUSTERS: int = 4


# ---------------------------------------------------------------------------
# Pipeline configuration
# ---------------------------------------------------------------------------

@dataclass
class AnalysisConfig:
    """
    Top level configuration object for both analysis pipelines.

    Pass this into the pipeline functions so that tests, scripts, and the
    report builder share the same settings.
    """

    food_data_path: Path = DEFAULT_FOOD_DATA_PATH
    stream_data_path: Path = DEFAULT_STREAM_DATA_PATH

    food_schema: TableSchema = FOOD_SCHEMA
    stream_schema: TableSchema = STREAM_SCHEMA

    # Food PCA
    food_label_column: str = "ShortDescrip"
    food_group_column: str = "FoodGroup"
    food_groups: Optional[List[str]] = field(
        default_factory=lambda: DEFAULT_FOOD_GROUPS.copy()
    )
    food_features: List[str] = field(
        default_factory=lambda: DEFAULT_FOOD_FEATURES.copy()
    )

    # Stream clustering
    stream_group_column: str = "site_code"
    missing_sentinel: float = MISSING_SENTINEL
    max_missing_fraction: float = DEFAULT_MAX_MISSING_FRACTION
    linkage_criteria: Tuple[str, str] = ("complete", "single")
    entanglement_norm: float = DEFAULT_ENTANGLEMENT_NORM
    untangle_max_passes: int = 25
    n_clusters: int = DEFAULT_N_CLUSTERS

    # Plot and HTML options
    report_title: str = "Food nutrients and stream chemistry"
    biplot_title: str = "PCA biplot of food nutrients"
    max_loading_arrows: int = 11

    def feature_label(self, column: str) -> str:
        """Return a display label for a column from either schema."""
        for schema in (self.food_schema, self.stream_schema):
            if column in schema.column_names():
                return schema.label_for(column)
        return column
