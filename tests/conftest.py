"""Shared fixtures: a small LSOA-like grid and its census table."""

import matplotlib

matplotlib.use("Agg")

import geopandas as gpd
import matplotlib.pyplot as plt
import pandas as pd
import pytest
from shapely.geometry import box

from census_choropleth.config import Config, MapConfig, PathsConfig
from census_choropleth.datasource import DatasetConfig


QUALIFIED = [5, 8, 12, 15, 18, 20, 22, 25, 27, 30, 33, 36, 40, 45, 50, 55, 62, 70, 81, 95]


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


@pytest.fixture
def lsoa_grid():
    """4 x 5 grid of 1 km squares in British National Grid coordinates."""
    cells = []
    for row in range(4):
        for col in range(5):
            cells.append({
                "LSOA11CD": f"E0100{row * 5 + col:04d}",
                "borough": "North" if row < 2 else "South",
                "geometry": box(col * 1000, row * 1000, (col + 1) * 1000, (row + 1) * 1000),
            })
    return gpd.GeoDataFrame(cells, geometry="geometry", crs="EPSG:27700")


@pytest.fixture
def census_table(lsoa_grid):
    return pd.DataFrame({
        "GeographyCode": lsoa_grid["LSOA11CD"].tolist(),
        "Qualification_L4": QUALIFIED,
        "Residents_16plus": [100] * len(QUALIFIED),
    })


@pytest.fixture
def mapped_grid(lsoa_grid):
    """Grid with the derived percentage already attached."""
    data = lsoa_grid.copy()
    data["pct_qualified"] = [float(q) for q in QUALIFIED]
    return data


@pytest.fixture
def data_dir(tmp_path, lsoa_grid, census_table):
    """Data directory laid out as the walkthrough expects."""
    root = tmp_path / "data"
    (root / "boundaries").mkdir(parents=True)
    (root / "census").mkdir(parents=True)
    lsoa_grid.to_file(root / "boundaries" / "lsoa.geojson", driver="GeoJSON")
    census_table.to_csv(root / "census" / "lsoa_census.csv", index=False)
    return root


@pytest.fixture
def walkthrough_config(data_dir, tmp_path):
    return Config(
        paths=PathsConfig(data_dir=str(data_dir), output_dir=str(tmp_path / "maps")),
        map=MapConfig(class_count=4, figsize=(4, 4), dpi=40),
        boundaries=DatasetConfig(path="boundaries/lsoa.geojson", id_column="LSOA11CD"),
        census=DatasetConfig(path="census/lsoa_census.csv", id_column="GeographyCode"),
    )
