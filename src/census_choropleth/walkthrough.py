"""
Step-by-step census choropleth walkthrough.

The walkthrough:
1. Loads LSOA boundaries and a census table
2. Joins them on the area code and derives a percentage
3. Maps the percentage with each classification style in turn
4. Finishes with a polished layout (custom ramp, borders, north arrow,
   scale bar and credits)

Each map step takes the prepared data and a Config and returns
``(figure, axes)``; ``run_walkthrough`` renders them all to PNG files.
"""

from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Tuple

import geopandas as gpd
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from loguru import logger

from census_choropleth.classify import (
    ClassificationStrategy,
    Continuous,
    Fixed,
    HeadTails,
    NaturalBreaks,
    Pretty,
    Quantile,
)
from census_choropleth.config import Config, config as default_config
from census_choropleth.datasource import BoundaryDataSource, CensusTableSource
from census_choropleth.join import AttributeJoiner, add_percentage
from census_choropleth.layout import (
    add_borders,
    add_credits,
    add_north_arrow,
    add_scale_bar,
    custom_colormap,
)
from census_choropleth.visualizer import MapVisualizer


MapStep = Callable[[gpd.GeoDataFrame, Config], Tuple[Figure, Axes]]


def prepare_data(config: Optional[Config] = None) -> gpd.GeoDataFrame:
    """Load, join and derive the mapped percentage.

    Returns:
        Boundaries with census columns and the derived metric column
    """
    config = config or default_config
    metric = config.metric

    boundaries = BoundaryDataSource(config.boundary_source_config())
    census = CensusTableSource(config.census_source_config())

    result = AttributeJoiner(boundaries).join(census)
    data = add_percentage(
        result.data,
        numerator=metric.numerator,
        denominator=metric.denominator,
        name=metric.name,
        scale=metric.scale
    )

    values = data[metric.name]
    logger.info(
        f"{metric.name}: min {values.min():.2f}, "
        f"median {values.median():.2f}, max {values.max():.2f}"
    )
    return data


def _classified_map(
    data: gpd.GeoDataFrame,
    config: Config,
    strategy: ClassificationStrategy,
    title: str,
    colormap=None
) -> Tuple[Figure, Axes]:
    viz = MapVisualizer()
    return viz.choropleth(
        data=data,
        value_column=config.metric.name,
        strategy=strategy,
        k=config.map.class_count,
        title=title,
        colormap=colormap or config.map.colormap,
        legend_label=config.metric.label,
        figsize=config.map.figsize
    )


def map_quantile(data: gpd.GeoDataFrame, config: Config) -> Tuple[Figure, Axes]:
    """Classes holding an equal number of areas."""
    return _classified_map(data, config, Quantile(), "Quantile classes")


def map_fixed(data: gpd.GeoDataFrame, config: Config) -> Tuple[Figure, Axes]:
    """Classes bounded by the configured breaks."""
    strategy = Fixed(breaks=config.map.fixed_breaks)
    viz = MapVisualizer()
    return viz.choropleth(
        data=data,
        value_column=config.metric.name,
        strategy=strategy,
        title="Fixed breaks",
        colormap=config.map.colormap,
        legend_label=config.metric.label,
        figsize=config.map.figsize
    )


def map_pretty(data: gpd.GeoDataFrame, config: Config) -> Tuple[Figure, Axes]:
    """Equal-width classes on round numbers."""
    return _classified_map(data, config, Pretty(), "Pretty breaks")


def map_natural_breaks(data: gpd.GeoDataFrame, config: Config) -> Tuple[Figure, Axes]:
    """Fisher-Jenks natural breaks."""
    return _classified_map(data, config, NaturalBreaks(), "Natural breaks (Fisher-Jenks)")


def map_head_tails(data: gpd.GeoDataFrame, config: Config) -> Tuple[Figure, Axes]:
    """Head/tail breaks; the class count follows the data."""
    return _classified_map(data, config, HeadTails(), "Head/tail breaks")


def map_continuous(data: gpd.GeoDataFrame, config: Config) -> Tuple[Figure, Axes]:
    """Unclassed gradient from the minimum to the maximum."""
    return _classified_map(data, config, Continuous(), "Continuous colour ramp")


def map_polished(data: gpd.GeoDataFrame, config: Config) -> Tuple[Figure, Axes]:
    """Natural breaks on a custom ramp with borders, compass, scale bar and credits."""
    ramp = custom_colormap(config.map.ramp_colors, name="walkthrough")
    fig, ax = _classified_map(
        data, config, NaturalBreaks(), config.metric.label, colormap=ramp
    )

    add_borders(ax, data, dissolve_by=config.map.border_column)
    add_north_arrow(ax)
    add_scale_bar(ax, crs=data.crs)
    add_credits(ax, config.map.credits)
    return fig, ax


WALKTHROUGH_STEPS: Dict[str, MapStep] = {
    "quantile": map_quantile,
    "fixed": map_fixed,
    "pretty": map_pretty,
    "natural_breaks": map_natural_breaks,
    "head_tails": map_head_tails,
    "continuous": map_continuous,
    "polished": map_polished,
}


def run_walkthrough(
    config: Optional[Config] = None,
    output_dir: Optional[str] = None,
    steps: Optional[Iterable[str]] = None,
    data: Optional[gpd.GeoDataFrame] = None
) -> Dict[str, Path]:
    """Render every walkthrough map to a PNG file.

    Args:
        config: Settings (module defaults if None)
        output_dir: Where to write the maps (config.paths.output_dir if None)
        steps: Subset of step names to render (all if None)
        data: Prepared data; loaded with ``prepare_data`` if None

    Returns:
        Mapping from step name to the written file
    """
    config = config or default_config
    selected = list(WALKTHROUGH_STEPS) if steps is None else list(steps)

    unknown = [name for name in selected if name not in WALKTHROUGH_STEPS]
    if unknown:
        raise ValueError(
            f"Unknown walkthrough steps: {unknown}. "
            f"Available steps: {list(WALKTHROUGH_STEPS)}"
        )

    if data is None:
        data = prepare_data(config)

    out_dir = Path(output_dir or config.paths.output_dir)
    viz = MapVisualizer()
    written: Dict[str, Path] = {}

    for index, name in enumerate(WALKTHROUGH_STEPS, start=1):
        if name not in selected:
            continue
        logger.info(f"Step {index}: {name}")
        fig, _ = WALKTHROUGH_STEPS[name](data, config)
        path = out_dir / f"{index:02d}_{name}.png"
        viz.save(path, fig, dpi=config.map.dpi)
        plt.close(fig)
        written[name] = path

    return written
