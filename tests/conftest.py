"""
Pytest configuration and shared fixtures.

This file is automatically discovered by pytest and provides small synthetic
food nutrient and stream chemistry tables shaped like the real inputs.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from nutristream.config import DEFAULT_FOOD_FEATURES, AnalysisConfig, STREAM_SCHEMA


STREAM_SITES = ["AB00", "GV01", "HO00", "MC06", "ON02", "RG01"]


@pytest.fixture
def scenario_points():
    """Four points forming two tight, well separated pairs."""
    return pd.DataFrame(
        {"x": [0.0, 0.0, 5.0, 5.0], "y": [0.0, 1.0, 5.0, 6.0]},
        index=["p1", "p2", "p3", "p4"],
    )


@pytest.fixture
def random_matrix():
    """A 30 x 5 matrix of correlated random features."""
    rng = np.random.default_rng(7)
    base = rng.standard_normal((30, 5))
    base[:, 1] += 0.8 * base[:, 0]
    base[:, 4] = 3.0 * base[:, 4] + 10.0
    return pd.DataFrame(
        base,
        columns=["a", "b", "c", "d", "e"],
        index=[f"obs{i}" for i in range(30)],
    )


@pytest.fixture
def food_table():
    """
    Raw food nutrient table.

    20 vegetables and 5 fats; one vegetable lacks a fiber value and two
    vegetables share a short description.
    """
    rng = np.random.default_rng(11)
    n_veg, n_fat = 20, 5
    n = n_veg + n_fat

    data = {
        "ID": list(range(1000, 1000 + n)),
        "FoodGroup": ["Vegetables and Vegetable Products"] * n_veg + ["Fats and Oils"] * n_fat,
        "ShortDescrip": [f"VEG {i}" for i in range(n_veg)] + [f"FAT {i}" for i in range(n_fat)],
        "Descrip": [f"Food number {i}" for i in range(n)],
    }
    for feature in DEFAULT_FOOD_FEATURES:
        data[feature] = rng.gamma(shape=2.0, scale=3.0, size=n)

    df = pd.DataFrame(data)
    df.loc[3, "Fiber_g"] = np.nan
    df.loc[5, "ShortDescrip"] = "VEG 4"
    return df


@pytest.fixture
def stream_table():
    """
    Raw stream chemistry samples, five per site.

    - tpc_uM is almost entirely the -999 sentinel and should be dropped
    - site ON02 never has a conductivity reading and should be dropped
    - one ammonium value is a non-numeric string
    """
    rng = np.random.default_rng(3)
    rows = []
    for site_number, site in enumerate(STREAM_SITES):
        for sample in range(5):
            row = {"site_code": site, "timestamp_local": f"2020-0{sample + 1}-01"}
            for col in STREAM_SCHEMA.numeric_columns():
                row[col] = float(rng.uniform(1.0, 10.0) + 4.0 * site_number)
            row["tpc_uM"] = -999.0
            if site == "ON02":
                row["spec_cond_uSpercm"] = -999.0
            rows.append(row)

    df = pd.DataFrame(rows)
    df.loc[0, "tpc_uM"] = 12.5
    df["nh4_uM"] = df["nh4_uM"].astype(object)
    df.loc[1, "nh4_uM"] = "n/a"
    return df


@pytest.fixture
def analysis_config(tmp_path, food_table, stream_table):
    """AnalysisConfig pointing at CSV copies of the synthetic tables."""
    food_path = tmp_path / "food.csv"
    stream_path = tmp_path / "stream.csv"
    food_table.to_csv(food_path, index=False)
    stream_table.to_csv(stream_path, index=False)
    return AnalysisConfig(food_data_path=food_path, stream_data_path=stream_path)
