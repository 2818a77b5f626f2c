"""Tests for settings and the dataset registry."""

from pathlib import Path

import pytest

import census_choropleth.config as config_module
from census_choropleth.config import (
    Config,
    DatasetRegistry,
    PathsConfig,
    get_dataset_config,
    list_datasets,
    load_config_from_env,
    register_dataset,
)
from census_choropleth.datasource import DatasetConfig


class TestEnvironment:

    def test_env_overrides_paths(self, monkeypatch):
        monkeypatch.setenv("CENSUS_MAPS_DATA_DIR", "/srv/census")
        monkeypatch.setenv("CENSUS_MAPS_CLASSES", "7")

        config = load_config_from_env()
        assert config.paths.data_dir == "/srv/census"
        assert config.map.class_count == 7

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CENSUS_MAPS_DATA_DIR", raising=False)
        assert PathsConfig().data_dir == "./data"


class TestYaml:

    def test_overlay(self, tmp_path):
        path = tmp_path / "maps.yaml"
        path.write_text(
            "paths:\n"
            "  data_dir: /srv/census\n"
            "metric:\n"
            "  numerator: Students\n"
            "map:\n"
            "  class_count: 6\n"
            "  figsize: [8, 6]\n"
            "census:\n"
            "  path: tables/ks.csv\n"
        )
        config = Config.from_yaml(path)

        assert config.paths.data_dir == "/srv/census"
        assert config.metric.numerator == "Students"
        assert config.metric.denominator == "Residents_16plus"
        assert config.map.class_count == 6
        assert config.map.figsize == (8, 6)
        assert config.census.path == "tables/ks.csv"
        assert config.census.id_column == "GeographyCode"

    def test_path_override_renames_dataset(self, tmp_path):
        path = tmp_path / "maps.yaml"
        path.write_text(
            "census:\n"
            "  path: tables/ks501.csv\n"
            "boundaries:\n"
            "  path: boundaries/wards.gpkg\n"
            "  name: Ward boundaries\n"
        )
        config = Config.from_yaml(path)

        assert config.census.name == "ks501"
        assert config.boundaries.name == "Ward boundaries"
        assert Config.from_yaml(path).census_source_config().name == "ks501"

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "maps.yaml"
        path.write_text("map:\n  classes: 6\n")
        with pytest.raises(ValueError, match="classes"):
            Config.from_yaml(path)

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Config.from_yaml(path).metric.name == "pct_qualified"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "nope.yaml")


class TestSourceConfigs:

    def test_paths_anchored_at_data_dir(self, tmp_path):
        config = Config(paths=PathsConfig(data_dir=str(tmp_path), output_dir="maps"))
        boundary = config.boundary_source_config()

        assert Path(boundary.path) == tmp_path / "boundaries" / "lsoa_2011.shp"

    def test_census_requires_metric_columns(self):
        config = Config(census=DatasetConfig(path="t.csv", id_column="code"))
        census = config.census_source_config()

        assert "Qualification_L4" in census.value_columns
        assert "Residents_16plus" in census.value_columns
        assert config.census.value_columns == []


class TestDatasetRegistry:

    def test_presets(self):
        registry = DatasetRegistry()
        assert registry.get("LSOA_BOUNDARIES").id_column == "LSOA11CD"
        assert set(registry.list_datasets()) == {"lsoa_boundaries", "census_table"}

    def test_unknown_dataset(self):
        with pytest.raises(KeyError, match="Available datasets"):
            DatasetRegistry().get("wards")

    def test_global_registry_helpers(self, monkeypatch):
        monkeypatch.setattr(config_module, "registry", DatasetRegistry())
        wards = DatasetConfig(path="wards.shp", id_column="WD11CD")

        register_dataset("Wards", wards)

        assert get_dataset_config("wards") is wards
        assert get_dataset_config("census_table").id_column == "GeographyCode"
        assert "wards" in list_datasets()
        with pytest.raises(KeyError):
            get_dataset_config("parishes")

    def test_create_and_register(self):
        registry = DatasetRegistry()
        created = registry.create_config(
            path="wards.shp", id_column="WD11CD", register_as="wards"
        )
        assert registry.get("wards") is created
        assert created.name == "wards"
