"""Tests for the census attribute join and derived percentages."""

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest

from census_choropleth.datasource import DatasetConfig
from census_choropleth.errors import JoinValidationError
from census_choropleth.join import AttributeJoiner, add_percentage, attribute_join


class TestAttributeJoin:

    def test_complete_join(self, lsoa_grid, census_table):
        result = attribute_join(lsoa_grid, "LSOA11CD", census_table, "GeographyCode")

        assert isinstance(result.data, gpd.GeoDataFrame)
        assert len(result.data) == len(lsoa_grid)
        assert result.is_complete
        assert result.data.crs == lsoa_grid.crs
        assert "Qualification_L4" in result.data.columns

    def test_boundaries_keep_their_order(self, lsoa_grid, census_table):
        shuffled = census_table.sample(frac=1.0, random_state=1)
        result = attribute_join(lsoa_grid, "LSOA11CD", shuffled, "GeographyCode")
        assert result.data["LSOA11CD"].tolist() == lsoa_grid["LSOA11CD"].tolist()

    def test_unmatched_boundaries_rejected(self, lsoa_grid, census_table):
        partial = census_table.iloc[:-2]
        with pytest.raises(JoinValidationError, match="2 boundaries"):
            attribute_join(lsoa_grid, "LSOA11CD", partial, "GeographyCode")

    def test_unmatched_boundaries_kept_as_missing(self, lsoa_grid, census_table):
        partial = census_table.iloc[:-2]
        result = attribute_join(
            lsoa_grid, "LSOA11CD", partial, "GeographyCode", require_complete=False
        )

        assert len(result.data) == len(lsoa_grid)
        assert result.unmatched_ids == lsoa_grid["LSOA11CD"].tolist()[-2:]
        assert result.data["Qualification_L4"].isna().sum() == 2

    def test_unused_table_rows_reported(self, lsoa_grid, census_table):
        extra = pd.concat([
            census_table,
            pd.DataFrame({"GeographyCode": ["W01000001"], "Qualification_L4": [1],
                          "Residents_16plus": [10]}),
        ])
        result = attribute_join(lsoa_grid, "LSOA11CD", extra, "GeographyCode")

        assert result.unused_table_ids == ["W01000001"]
        assert len(result.data) == len(lsoa_grid)

    def test_duplicate_table_keys_rejected(self, lsoa_grid, census_table):
        duplicated = pd.concat([census_table, census_table.iloc[:1]])
        with pytest.raises(JoinValidationError, match="not unique"):
            attribute_join(lsoa_grid, "LSOA11CD", duplicated, "GeographyCode")

    def test_config_required_for_dataframes(self, lsoa_grid, census_table):
        with pytest.raises(ValueError):
            AttributeJoiner(lsoa_grid)

        joiner = AttributeJoiner(lsoa_grid, DatasetConfig(path="", id_column="LSOA11CD"))
        with pytest.raises(ValueError):
            joiner.join(census_table)


class TestAddPercentage:

    def test_percentage(self, census_table):
        result = add_percentage(census_table, "Qualification_L4", "Residents_16plus", "pct")

        assert result["pct"].tolist() == pytest.approx(census_table["Qualification_L4"].tolist())
        assert "pct" not in census_table.columns

    def test_scale(self):
        table = pd.DataFrame({"a": [1, 3], "b": [4, 4]})
        result = add_percentage(table, "a", "b", "share", scale=1.0)
        assert result["share"].tolist() == pytest.approx([0.25, 0.75])

    def test_zero_denominator_is_missing(self):
        table = pd.DataFrame({"a": [1, 0], "b": [2, 0]})
        result = add_percentage(table, "a", "b", "pct")

        assert result["pct"].iloc[0] == pytest.approx(50.0)
        assert np.isnan(result["pct"].iloc[1])

    def test_missing_column_rejected(self):
        table = pd.DataFrame({"a": [1]})
        with pytest.raises(ValueError, match="b"):
            add_percentage(table, "a", "b", "pct")
