"""
Data sources for census mapping.

This module loads the two inputs of a census choropleth: boundary geometries
(Shapefile, GeoPackage, GeoJSON, GeoDatabase and other formats supported by
GeoPandas/Fiona) and a delimited census table keyed by area code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Union

import fiona
import geopandas as gpd
import pandas as pd
from loguru import logger


MULTI_LAYER_SUFFIXES = (".gdb", ".gpkg")


@dataclass
class DatasetConfig:
    """Configuration for an input dataset.

    Attributes:
        path: Path to the data file, absolute or relative to a data directory
        id_column: Column holding the area code used to join datasets
        value_columns: Columns that must be present (census counts etc.)
        geometry_column: Column name for geometry (default: 'geometry')
        layer: Layer name for multi-layer formats like GeoPackage
        name: Human-readable name for the dataset
    """
    path: str
    id_column: str
    value_columns: List[str] = field(default_factory=list)
    geometry_column: str = "geometry"
    layer: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        if self.name is None:
            self.name = Path(self.path).stem

    def resolve(self, base_dir: Union[str, Path, None]) -> "DatasetConfig":
        """Return a copy whose relative path is anchored at ``base_dir``."""
        path = Path(self.path)
        if base_dir is None or path.is_absolute():
            return replace(self, value_columns=list(self.value_columns))
        return replace(
            self,
            path=str(Path(base_dir) / path),
            value_columns=list(self.value_columns)
        )


class DataSource(ABC):
    """Abstract base class for input data sources."""

    def __init__(self, config: DatasetConfig):
        self.config = config
        self._data = None

    @abstractmethod
    def load(self) -> pd.DataFrame:
        """Load and return the data."""
        pass

    def get_config(self) -> DatasetConfig:
        """Return the dataset configuration."""
        return self.config

    def _check_exists(self) -> Path:
        path = Path(self.config.path)
        if not path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")
        return path

    def _validate_columns(self):
        """Validate that required columns exist in the loaded data."""
        if self._data is None:
            return

        missing = []
        if self.config.id_column not in self._data.columns:
            missing.append(f"id_column: {self.config.id_column}")

        for column in self.config.value_columns:
            if column not in self._data.columns:
                missing.append(f"value_column: {column}")

        if missing:
            available = list(self._data.columns)
            raise ValueError(
                f"Missing columns in {self.config.name}: {missing}. "
                f"Available columns: {available}"
            )

    def get_columns(self) -> List[str]:
        """Get list of available columns, loading the data if needed."""
        if self._data is None:
            self.load()
        return list(self._data.columns)


class BoundaryDataSource(DataSource):
    """Boundary geometries (e.g. LSOA polygons) read from a vector file."""

    def load(self) -> gpd.GeoDataFrame:
        """Load the boundaries from file.

        Returns:
            GeoDataFrame containing the boundaries

        Raises:
            FileNotFoundError: If the data file doesn't exist
            ValueError: If the layer or a required column is missing
        """
        if self._data is not None:
            return self._data

        path = self._check_exists()

        if path.suffix.lower() in MULTI_LAYER_SUFFIXES:
            self._data = gpd.read_file(str(path), layer=self._select_layer(path))
        else:
            self._data = gpd.read_file(str(path))

        if self.config.geometry_column != self._data.geometry.name:
            self._data = self._data.set_geometry(self.config.geometry_column)

        self._validate_columns()
        logger.info(f"Loaded {len(self._data)} boundaries from {path.name}")
        return self._data

    def _select_layer(self, path: Path) -> str:
        """Pick the configured layer of a multi-layer container."""
        available_layers = fiona.listlayers(str(path))

        if self.config.layer is None:
            if len(available_layers) == 1:
                return available_layers[0]
            raise ValueError(
                f"{path.name} has multiple layers: {available_layers}. "
                "Please specify a layer in the config."
            )

        if self.config.layer not in available_layers:
            raise ValueError(
                f"Layer '{self.config.layer}' not found. "
                f"Available layers: {available_layers}"
            )
        return self.config.layer

    def list_layers(self) -> List[str]:
        """List available layers, or an empty list for single-layer formats."""
        path = Path(self.config.path)
        if path.suffix.lower() in MULTI_LAYER_SUFFIXES:
            return fiona.listlayers(str(path))
        return []


class CensusTableSource(DataSource):
    """Census counts read from a delimited text file.

    The key column is read as text so that codes such as ``E01000001``
    or zero-padded identifiers survive unchanged.
    """

    def __init__(self, config: DatasetConfig, sep: str = ","):
        super().__init__(config)
        self.sep = sep

    def load(self) -> pd.DataFrame:
        """Load the census table.

        Raises:
            FileNotFoundError: If the data file doesn't exist
            ValueError: If a required column is missing
        """
        if self._data is not None:
            return self._data

        path = self._check_exists()
        self._data = pd.read_csv(
            path,
            sep=self.sep,
            dtype={self.config.id_column: str}
        )
        self._validate_columns()
        logger.info(f"Loaded {len(self._data)} census rows from {path.name}")
        return self._data


def load_boundaries(
    path: str,
    id_column: str,
    layer: Optional[str] = None,
    name: Optional[str] = None
) -> gpd.GeoDataFrame:
    """Convenience function to load boundary geometries.

    Example:
        >>> lsoas = load_boundaries("data/lsoa_2011.gpkg", "LSOA11CD")
    """
    config = DatasetConfig(path=path, id_column=id_column, layer=layer, name=name)
    return BoundaryDataSource(config).load()


def load_census_table(
    path: str,
    id_column: str,
    value_columns: Optional[List[str]] = None,
    sep: str = ",",
    name: Optional[str] = None
) -> pd.DataFrame:
    """Convenience function to load a census table.

    Example:
        >>> table = load_census_table(
        ...     "data/census.csv",
        ...     id_column="GeographyCode",
        ...     value_columns=["Qualification_L4", "Residents_16plus"]
        ... )
    """
    config = DatasetConfig(
        path=path,
        id_column=id_column,
        value_columns=list(value_columns or []),
        name=name
    )
    return CensusTableSource(config, sep=sep).load()
