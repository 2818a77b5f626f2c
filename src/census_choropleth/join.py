"""
Attribute joins between boundaries and census tables.

This module attaches census counts to boundary geometries through a shared
area code and derives the percentage fields that are mapped.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from loguru import logger

from census_choropleth.datasource import DatasetConfig, DataSource
from census_choropleth.errors import JoinValidationError


@dataclass
class JoinResult:
    """Result of an attribute join.

    Attributes:
        data: Boundaries with the census columns attached
        boundary_id_column: Column name for boundary identifiers
        table_id_column: Column name for census table identifiers
        unmatched_ids: Boundary ids with no census row
        unused_table_ids: Census ids with no boundary
    """
    data: gpd.GeoDataFrame
    boundary_id_column: str
    table_id_column: str
    unmatched_ids: List[str] = field(default_factory=list)
    unused_table_ids: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """True when every boundary found a census row."""
        return not self.unmatched_ids


class AttributeJoiner:
    """Left-joins census tables onto boundary geometries.

    Every boundary is kept. A boundary id may match at most one census row.
    """

    def __init__(
        self,
        boundary_data: Union[gpd.GeoDataFrame, DataSource],
        boundary_config: Optional[DatasetConfig] = None
    ):
        """Initialize the joiner.

        Args:
            boundary_data: GeoDataFrame or DataSource containing boundaries
            boundary_config: Configuration for the boundary dataset (required
                            if boundary_data is a GeoDataFrame)
        """
        if isinstance(boundary_data, DataSource):
            self.boundaries = boundary_data.load()
            self.boundary_config = boundary_data.get_config()
        else:
            if boundary_config is None:
                raise ValueError(
                    "boundary_config is required when passing a GeoDataFrame"
                )
            self.boundaries = boundary_data
            self.boundary_config = boundary_config

    def join(
        self,
        table: Union[pd.DataFrame, DataSource],
        table_config: Optional[DatasetConfig] = None,
        require_complete: bool = True
    ) -> JoinResult:
        """Attach census columns to the boundaries.

        Args:
            table: DataFrame or DataSource holding the census table
            table_config: Configuration for the table (required if table
                          is a DataFrame)
            require_complete: Fail if any boundary has no census row

        Returns:
            JoinResult with one row per boundary

        Raises:
            JoinValidationError: If the table key is duplicated, or boundaries
                                 are left unmatched while require_complete is set
        """
        if isinstance(table, DataSource):
            table_df = table.load()
            tbl_config = table.get_config()
        else:
            if table_config is None:
                raise ValueError(
                    "table_config is required when passing a DataFrame"
                )
            table_df = table
            tbl_config = table_config

        boundary_key = self.boundary_config.id_column
        table_key = tbl_config.id_column

        duplicated = table_df[table_key][table_df[table_key].duplicated()]
        if not duplicated.empty:
            raise JoinValidationError(
                f"Census key '{table_key}' is not unique: "
                f"{sorted(duplicated.astype(str).unique())[:5]}"
            )

        left_ids = self.boundaries[boundary_key].astype(str)
        right_ids = table_df[table_key].astype(str)

        joined = self.boundaries.assign(**{boundary_key: left_ids}).merge(
            table_df.assign(**{table_key: right_ids}),
            left_on=boundary_key,
            right_on=table_key,
            how="left",
            validate="many_to_one",
            indicator=True
        )

        unmatched = joined.loc[joined["_merge"] == "left_only", boundary_key].tolist()
        unused = sorted(set(right_ids) - set(left_ids))
        joined = joined.drop(columns="_merge")

        if unused:
            logger.debug(f"{len(unused)} census rows have no boundary")

        if unmatched:
            if require_complete:
                raise JoinValidationError(
                    f"{len(unmatched)} boundaries have no census row, "
                    f"e.g. {unmatched[:5]}"
                )
            logger.warning(
                f"{len(unmatched)} boundaries have no census row; "
                "their values are left missing"
            )

        logger.info(f"Joined {len(joined)} boundaries to census table on '{boundary_key}'")

        return JoinResult(
            data=gpd.GeoDataFrame(joined, geometry=self.boundaries.geometry.name,
                                  crs=self.boundaries.crs),
            boundary_id_column=boundary_key,
            table_id_column=table_key,
            unmatched_ids=unmatched,
            unused_table_ids=unused
        )


def add_percentage(
    data: pd.DataFrame,
    numerator: str,
    denominator: str,
    name: str,
    scale: float = 100.0
) -> pd.DataFrame:
    """Add ``numerator / denominator * scale`` as a new column.

    Areas with a zero or missing denominator get a missing value.

    Args:
        data: Table holding both count columns
        numerator: Column with the count of interest
        denominator: Column with the population base
        name: Name of the new column
        scale: Multiplier, 100 for a percentage

    Returns:
        Copy of ``data`` with the new column
    """
    missing = [column for column in (numerator, denominator) if column not in data.columns]
    if missing:
        raise ValueError(
            f"Missing columns for '{name}': {missing}. "
            f"Available columns: {list(data.columns)}"
        )

    counts = pd.to_numeric(data[numerator], errors="coerce")
    base = pd.to_numeric(data[denominator], errors="coerce")

    zero_base = base == 0
    if zero_base.any():
        logger.warning(f"{int(zero_base.sum())} areas have a zero '{denominator}'; '{name}' left missing")

    result = data.copy()
    result[name] = (counts / base.where(~zero_base, np.nan)) * scale
    return result


def attribute_join(
    boundaries: gpd.GeoDataFrame,
    boundary_id_column: str,
    table: pd.DataFrame,
    table_id_column: str,
    require_complete: bool = True
) -> JoinResult:
    """Convenience function for joining a census table to boundaries.

    Example:
        >>> result = attribute_join(
        ...     boundaries=lsoas,
        ...     boundary_id_column="LSOA11CD",
        ...     table=census,
        ...     table_id_column="GeographyCode"
        ... )
    """
    boundary_config = DatasetConfig(path="", id_column=boundary_id_column)
    table_config = DatasetConfig(path="", id_column=table_id_column)

    joiner = AttributeJoiner(boundaries, boundary_config)
    return joiner.join(table, table_config, require_complete=require_complete)
