"""
Census choropleth mapping toolkit.

This package computes choropleth class breaks and renders census maps.

Modules:
    classify: Class break strategies (quantile, fixed, pretty, natural
              breaks, head/tails, continuous)
    datasource: Loading of boundary files and census tables
    join: Attribute join and derived percentages
    visualizer: Choropleth rendering
    layout: Borders, north arrow, scale bar, credits, colour ramps
    walkthrough: The step-by-step map sequence
    config: Settings and dataset presets

Example:
    >>> from census_choropleth import compute_breaks, NaturalBreaks
    >>>
    >>> breaks = compute_breaks([1, 1, 1, 1, 50, 50, 50, 50], k=2,
    ...                         strategy=NaturalBreaks())
    >>> breaks.tolist()
    [1.0, 25.5, 50.0]
"""

from census_choropleth.errors import (
    ChoroplethError,
    InvalidInputError,
    StrategyUnsupportedError,
    JoinValidationError,
)

from census_choropleth.classify import (
    Breaks,
    ContinuousScale,
    ClassificationStrategy,
    Quantile,
    Fixed,
    OutOfRange,
    Pretty,
    NaturalBreaks,
    HeadTails,
    Continuous,
    Normalization,
    assign_classes,
    available_strategies,
    compute_breaks,
    goodness_of_variance_fit,
    nice_number,
    strategy_from_name,
)

from census_choropleth.datasource import (
    DatasetConfig,
    DataSource,
    BoundaryDataSource,
    CensusTableSource,
    load_boundaries,
    load_census_table,
)

from census_choropleth.join import (
    AttributeJoiner,
    JoinResult,
    add_percentage,
    attribute_join,
)

from census_choropleth.visualizer import (
    ColorScale,
    MapStyle,
    LayerConfig,
    MapVisualizer,
    plot_map,
    compare_maps,
)

from census_choropleth.layout import (
    add_borders,
    add_credits,
    add_north_arrow,
    add_scale_bar,
    custom_colormap,
)

from census_choropleth.config import (
    Config,
    DatasetRegistry,
    registry,
    get_dataset_config,
    register_dataset,
    list_datasets,
    load_config_from_env,
    LSOA_BOUNDARIES,
    CENSUS_TABLE,
)

__version__ = "1.0.0"

__all__ = [
    # Errors
    "ChoroplethError",
    "InvalidInputError",
    "StrategyUnsupportedError",
    "JoinValidationError",
    # Classification
    "Breaks",
    "ContinuousScale",
    "ClassificationStrategy",
    "Quantile",
    "Fixed",
    "OutOfRange",
    "Pretty",
    "NaturalBreaks",
    "HeadTails",
    "Continuous",
    "Normalization",
    "assign_classes",
    "available_strategies",
    "compute_breaks",
    "goodness_of_variance_fit",
    "nice_number",
    "strategy_from_name",
    # Data loading
    "DatasetConfig",
    "DataSource",
    "BoundaryDataSource",
    "CensusTableSource",
    "load_boundaries",
    "load_census_table",
    # Joins
    "AttributeJoiner",
    "JoinResult",
    "add_percentage",
    "attribute_join",
    # Visualization
    "ColorScale",
    "MapStyle",
    "LayerConfig",
    "MapVisualizer",
    "plot_map",
    "compare_maps",
    # Layout
    "add_borders",
    "add_credits",
    "add_north_arrow",
    "add_scale_bar",
    "custom_colormap",
    # Configuration
    "Config",
    "DatasetRegistry",
    "registry",
    "get_dataset_config",
    "register_dataset",
    "list_datasets",
    "load_config_from_env",
    "LSOA_BOUNDARIES",
    "CENSUS_TABLE",
]
