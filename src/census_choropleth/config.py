"""
Configuration for the census mapping walkthrough.

Settings are dataclasses whose defaults come from environment variables.
A YAML file can override any of them. Input files are located through an
explicit data directory, never through the process working directory.
"""

import os
from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from loguru import logger

from census_choropleth.datasource import DatasetConfig


# Pre-defined dataset configurations
LSOA_BOUNDARIES = DatasetConfig(
    path="boundaries/lsoa_2011.shp",
    id_column="LSOA11CD",
    name="LSOA boundaries (2011)"
)

CENSUS_TABLE = DatasetConfig(
    path="census/lsoa_census.csv",
    id_column="GeographyCode",
    value_columns=["Qualification_L4", "Residents_16plus"],
    name="Census key statistics by LSOA"
)


class DatasetRegistry:
    """Registry for managing dataset configurations."""

    def __init__(self):
        """Initialize with pre-defined datasets."""
        self._datasets: Dict[str, DatasetConfig] = {}
        self._load_defaults()

    def _load_defaults(self):
        self.register("lsoa_boundaries", LSOA_BOUNDARIES)
        self.register("census_table", CENSUS_TABLE)

    def register(self, name: str, config: DatasetConfig):
        """Register a dataset configuration.

        Args:
            name: Unique identifier for the dataset
            config: Dataset configuration
        """
        self._datasets[name.lower()] = config

    def get(self, name: str) -> DatasetConfig:
        """Retrieve a dataset configuration.

        Raises:
            KeyError: If dataset not found
        """
        name = name.lower()
        if name not in self._datasets:
            available = list(self._datasets.keys())
            raise KeyError(
                f"Dataset '{name}' not found. Available datasets: {available}"
            )
        return self._datasets[name]

    def list_datasets(self) -> Dict[str, str]:
        """Map dataset names to their descriptions."""
        return {
            name: config.name or config.path
            for name, config in self._datasets.items()
        }

    def create_config(
        self,
        path: str,
        id_column: str,
        value_columns: Optional[List[str]] = None,
        layer: Optional[str] = None,
        name: Optional[str] = None,
        register_as: Optional[str] = None
    ) -> DatasetConfig:
        """Create and optionally register a new dataset configuration."""
        config = DatasetConfig(
            path=path,
            id_column=id_column,
            value_columns=list(value_columns or []),
            layer=layer,
            name=name
        )

        if register_as:
            self.register(register_as, config)

        return config


# Global registry instance
registry = DatasetRegistry()


def get_dataset_config(name: str) -> DatasetConfig:
    """Get a dataset configuration from the global registry."""
    return registry.get(name)


def register_dataset(name: str, config: DatasetConfig):
    """Register a dataset in the global registry."""
    registry.register(name, config)


def list_datasets() -> Dict[str, str]:
    """List all datasets in the global registry."""
    return registry.list_datasets()


@dataclass
class PathsConfig:
    """Input and output locations."""

    data_dir: str = field(
        default_factory=lambda: os.getenv("CENSUS_MAPS_DATA_DIR", "./data")
    )
    output_dir: str = field(
        default_factory=lambda: os.getenv("CENSUS_MAPS_OUTPUT_DIR", "./maps")
    )


@dataclass
class MetricConfig:
    """Derived percentage that gets mapped."""

    numerator: str = "Qualification_L4"
    denominator: str = "Residents_16plus"
    name: str = "pct_qualified"
    label: str = "% with level 4 qualifications"
    scale: float = 100.0


@dataclass
class MapConfig:
    """Map rendering settings."""

    class_count: int = field(
        default_factory=lambda: int(os.getenv("CENSUS_MAPS_CLASSES", "5"))
    )
    colormap: str = "YlOrRd"
    figsize: Tuple[float, float] = (10.0, 10.0)
    dpi: int = 150
    fixed_breaks: List[float] = field(
        default_factory=lambda: [0.0, 20.0, 40.0, 60.0, 80.0, 100.0]
    )
    ramp_colors: List[str] = field(
        default_factory=lambda: ["#f7fbff", "#6baed6", "#08306b"]
    )
    border_column: Optional[str] = None
    credits: str = "Contains National Statistics data © Crown copyright and database right"


@dataclass
class Config:
    """Main configuration container."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    metric: MetricConfig = field(default_factory=MetricConfig)
    map: MapConfig = field(default_factory=MapConfig)
    boundaries: DatasetConfig = field(default_factory=lambda: replace(LSOA_BOUNDARIES))
    census: DatasetConfig = field(default_factory=lambda: replace(CENSUS_TABLE))

    def boundary_source_config(self) -> DatasetConfig:
        """Boundary dataset with its path anchored at the data directory."""
        return self.boundaries.resolve(self.paths.data_dir)

    def census_source_config(self) -> DatasetConfig:
        """Census dataset with its path anchored at the data directory."""
        config = self.census.resolve(self.paths.data_dir)
        for column in (self.metric.numerator, self.metric.denominator):
            if column not in config.value_columns:
                config.value_columns.append(column)
        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "Config":
        """Load defaults and overlay the settings found in a YAML file.

        Example YAML::

            paths:
              data_dir: /srv/census
            metric:
              numerator: Qualification_L4
              denominator: Residents_16plus
            map:
              class_count: 6

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file holds unknown sections or keys
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        logger.debug(f"Loading config from: {path.resolve()}")
        with open(path, "r") as f:
            overrides = yaml.safe_load(f) or {}

        if not isinstance(overrides, dict):
            raise ValueError(f"Config file {path} must hold a mapping")

        return _apply_overrides(cls(), overrides)


def _apply_overrides(target: Any, overrides: Dict[str, Any]) -> Any:
    """Copy of dataclass ``target`` with ``overrides`` applied recursively."""
    known = {f.name: f for f in fields(target)}
    changes = {}

    for key, value in overrides.items():
        if key not in known:
            raise ValueError(
                f"Unknown setting '{key}' for {type(target).__name__}. "
                f"Available settings: {list(known)}"
            )
        current = getattr(target, key)
        if is_dataclass(current) and isinstance(value, dict):
            changes[key] = _apply_overrides(current, value)
        elif isinstance(current, tuple) and isinstance(value, list):
            changes[key] = tuple(value)
        else:
            changes[key] = value

    # A new file gets a name derived from its path unless one is given.
    if isinstance(target, DatasetConfig) and "path" in changes and "name" not in changes:
        changes["name"] = None

    return replace(target, **changes)


# Global config instance
config = Config()


def load_config_from_env() -> Config:
    """Load configuration from environment variables."""
    return Config(
        paths=PathsConfig(),
        metric=MetricConfig(),
        map=MapConfig(),
    )
