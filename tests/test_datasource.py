"""Tests for loading boundaries and census tables."""

from pathlib import Path

import geopandas as gpd
import pandas as pd
import pytest

from census_choropleth.datasource import (
    BoundaryDataSource,
    CensusTableSource,
    DatasetConfig,
    load_boundaries,
    load_census_table,
)


class TestDatasetConfig:

    def test_name_defaults_to_file_stem(self):
        assert DatasetConfig(path="data/lsoa.shp", id_column="id").name == "lsoa"

    def test_resolve_relative_path(self, tmp_path):
        config = DatasetConfig(path="census/table.csv", id_column="id")
        resolved = config.resolve(tmp_path)

        assert Path(resolved.path) == tmp_path / "census" / "table.csv"
        assert config.path == "census/table.csv"

    def test_resolve_keeps_absolute_path(self, tmp_path):
        absolute = str(tmp_path / "x.csv")
        assert DatasetConfig(path=absolute, id_column="id").resolve("/elsewhere").path == absolute


class TestBoundaryDataSource:

    def test_load_geojson(self, data_dir):
        boundaries = load_boundaries(str(data_dir / "boundaries" / "lsoa.geojson"), "LSOA11CD")

        assert isinstance(boundaries, gpd.GeoDataFrame)
        assert len(boundaries) == 20
        assert boundaries.crs.to_epsg() == 27700

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_boundaries(str(tmp_path / "missing.shp"), "LSOA11CD")

    def test_missing_column(self, data_dir):
        with pytest.raises(ValueError, match="LSOA21CD"):
            load_boundaries(str(data_dir / "boundaries" / "lsoa.geojson"), "LSOA21CD")

    def test_geopackage_layers(self, tmp_path, lsoa_grid):
        path = tmp_path / "areas.gpkg"
        lsoa_grid.to_file(path, layer="lsoa", driver="GPKG")
        lsoa_grid.iloc[:3].to_file(path, layer="sample", driver="GPKG")

        unnamed = BoundaryDataSource(DatasetConfig(path=str(path), id_column="LSOA11CD"))
        assert sorted(unnamed.list_layers()) == ["lsoa", "sample"]
        with pytest.raises(ValueError, match="multiple layers"):
            unnamed.load()

        sample = load_boundaries(str(path), "LSOA11CD", layer="sample")
        assert len(sample) == 3

        with pytest.raises(ValueError, match="not found"):
            load_boundaries(str(path), "LSOA11CD", layer="wards")

    def test_data_cached(self, data_dir):
        source = BoundaryDataSource(
            DatasetConfig(path=str(data_dir / "boundaries" / "lsoa.geojson"), id_column="LSOA11CD")
        )
        assert source.load() is source.load()
        assert "borough" in source.get_columns()


class TestCensusTableSource:

    def test_load_csv(self, data_dir):
        table = load_census_table(
            str(data_dir / "census" / "lsoa_census.csv"),
            id_column="GeographyCode",
            value_columns=["Qualification_L4"]
        )
        assert len(table) == 20
        assert table["GeographyCode"].iloc[0] == "E01000000"

    def test_key_kept_as_text(self, tmp_path):
        path = tmp_path / "codes.csv"
        pd.DataFrame({"code": ["00123", "04567"], "n": [1, 2]}).to_csv(path, index=False)

        table = load_census_table(str(path), id_column="code")
        assert table["code"].tolist() == ["00123", "04567"]

    def test_missing_value_column(self, data_dir):
        with pytest.raises(ValueError, match="Residents_All"):
            load_census_table(
                str(data_dir / "census" / "lsoa_census.csv"),
                id_column="GeographyCode",
                value_columns=["Residents_All"]
            )

    def test_custom_separator(self, tmp_path):
        path = tmp_path / "table.tsv"
        path.write_text("code\tn\nA\t1\nB\t2\n")

        source = CensusTableSource(DatasetConfig(path=str(path), id_column="code"), sep="\t")
        assert source.load()["n"].tolist() == [1, 2]
