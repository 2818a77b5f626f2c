"""
Choropleth rendering for census maps.

This module draws classified or continuous choropleths from GeoDataFrames.
Class boundaries come from ``census_choropleth.classify``; GeoPandas and
Matplotlib do the drawing.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import geopandas as gpd
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
import matplotlib.colors as mcolors
from matplotlib.figure import Figure
from matplotlib.patches import Patch
import numpy as np
from loguru import logger

from census_choropleth.classify import (
    Breaks,
    ClassificationStrategy,
    ContinuousScale,
    Quantile,
    compute_breaks,
)


class ColorScale(Enum):
    """Pre-defined color scales for map visualization."""
    VIRIDIS = "viridis"
    CIVIDIS = "cividis"
    BLUES = "Blues"
    GREENS = "Greens"
    REDS = "Reds"
    ORANGES = "Oranges"
    PURPLES = "Purples"
    GREYS = "Greys"
    YELLOW_GREEN_BLUE = "YlGnBu"
    YELLOW_ORANGE_RED = "YlOrRd"
    RED_PURPLE = "RdPu"
    RED_YELLOW_GREEN = "RdYlGn"
    SPECTRAL = "Spectral"


Colormap = Union[str, ColorScale, mcolors.Colormap]


@dataclass
class MapStyle:
    """Configuration for map styling.

    Attributes:
        colormap: Color scale name, ColorScale or a Colormap instance
        edge_color: Color for polygon boundaries
        edge_width: Width of polygon boundaries
        alpha: Transparency (0-1)
        missing_color: Color for areas with no data
        figsize: Figure size in inches (width, height)
        title: Map title
        legend: Whether to show the legend/colorbar
        legend_label: Title of the legend or colorbar
        legend_format: Format applied to class boundaries in the legend
        legend_loc: Legend position
    """
    colormap: Colormap = ColorScale.YELLOW_ORANGE_RED
    edge_color: str = "white"
    edge_width: float = 0.2
    alpha: float = 1.0
    missing_color: str = "lightgrey"
    figsize: Tuple[float, float] = (10, 10)
    title: Optional[str] = None
    legend: bool = True
    legend_label: Optional[str] = None
    legend_format: str = "{:,.1f}"
    legend_loc: str = "lower left"

    def get_colormap(self) -> mcolors.Colormap:
        """Resolve the configured colormap."""
        if isinstance(self.colormap, mcolors.Colormap):
            return self.colormap
        if isinstance(self.colormap, ColorScale):
            return plt.get_cmap(self.colormap.value)
        return plt.get_cmap(self.colormap)


@dataclass
class LayerConfig:
    """Configuration for a map layer.

    Attributes:
        data: GeoDataFrame to display
        value_column: Column to classify (None for uniform color)
        strategy: Classification strategy for the value column
        k: Requested number of classes
        style: Styling options for this layer
        zorder: Drawing order (higher = on top)
    """
    data: gpd.GeoDataFrame
    value_column: Optional[str] = None
    strategy: ClassificationStrategy = field(default_factory=Quantile)
    k: Optional[int] = None
    style: MapStyle = field(default_factory=MapStyle)
    zorder: int = 1


def class_colors(cmap: mcolors.Colormap, k: int) -> List[Tuple[float, float, float, float]]:
    """Sample ``k`` evenly spaced colours from a ramp."""
    if k == 1:
        return [cmap(0.5)]
    return [cmap(i / (k - 1)) for i in range(k)]


class MapVisualizer:
    """Creates choropleth maps from census data.

    Each value layer is classified with its strategy before drawing; the
    classification of the most recent value layer is kept in
    ``last_classification``.
    """

    def __init__(self, style: Optional[MapStyle] = None):
        """Initialize the visualizer.

        Args:
            style: Default style settings for maps
        """
        self.default_style = style or MapStyle()
        self._layers: List[LayerConfig] = []
        self.last_classification: Optional[Union[Breaks, ContinuousScale]] = None

    def add_layer(
        self,
        data: gpd.GeoDataFrame,
        value_column: Optional[str] = None,
        strategy: Optional[ClassificationStrategy] = None,
        k: Optional[int] = None,
        style: Optional[MapStyle] = None,
        zorder: int = 1
    ) -> "MapVisualizer":
        """Add a layer to the visualization.

        Returns:
            Self for method chaining
        """
        layer = LayerConfig(
            data=data,
            value_column=value_column,
            strategy=strategy or Quantile(),
            k=k,
            style=style or self.default_style,
            zorder=zorder
        )
        self._layers.append(layer)
        return self

    def clear_layers(self) -> "MapVisualizer":
        """Remove all layers.

        Returns:
            Self for method chaining
        """
        self._layers = []
        return self

    def plot(
        self,
        data: Optional[gpd.GeoDataFrame] = None,
        value_column: Optional[str] = None,
        strategy: Optional[ClassificationStrategy] = None,
        k: Optional[int] = None,
        style: Optional[MapStyle] = None,
        ax: Optional[Axes] = None
    ) -> Tuple[Figure, Axes]:
        """Create a map visualization.

        If data is provided, creates a single-layer map.
        If no data is provided, renders all added layers.

        Returns:
            Tuple of (Figure, Axes)
        """
        style = style or self.default_style

        if ax is None:
            fig, ax = plt.subplots(1, 1, figsize=style.figsize)
        else:
            fig = ax.get_figure()

        if data is not None:
            self._plot_layer(
                LayerConfig(
                    data=data,
                    value_column=value_column,
                    strategy=strategy or Quantile(),
                    k=k,
                    style=style
                ),
                ax,
                show_legend=style.legend
            )
        else:
            layers = sorted(self._layers, key=lambda x: x.zorder)
            valued = [i for i, layer in enumerate(layers) if layer.value_column is not None]
            for i, layer in enumerate(layers):
                show_legend = (
                    layer.style.legend and
                    bool(valued) and
                    i == valued[-1]  # Only the top value layer gets a legend
                )
                self._plot_layer(layer, ax, show_legend=show_legend)

        if style.title:
            ax.set_title(style.title, fontsize=14, fontweight='bold')

        ax.set_axis_off()
        fig.tight_layout()
        return fig, ax

    def _plot_layer(
        self,
        layer: LayerConfig,
        ax: Axes,
        show_legend: bool = True
    ):
        """Plot a single layer on the axes."""
        style = layer.style
        plot_kwargs: Dict[str, Any] = {
            "ax": ax,
            "edgecolor": style.edge_color,
            "linewidth": style.edge_width,
            "alpha": style.alpha,
            "zorder": layer.zorder
        }

        if layer.value_column is None:
            layer.data.plot(color=style.missing_color, **plot_kwargs)
            return

        if layer.value_column not in layer.data.columns:
            raise ValueError(
                f"Column '{layer.value_column}' not found. "
                f"Available columns: {list(layer.data.columns)}"
            )

        values = layer.data[layer.value_column].to_numpy(dtype=float)
        classification = compute_breaks(values, layer.k, layer.strategy)
        self.last_classification = classification
        cmap = style.get_colormap()

        if isinstance(classification, ContinuousScale):
            facecolors = self._continuous_colors(values, classification, cmap, style)
        else:
            facecolors = self._class_colors(values, classification, cmap, style)
            logger.debug(
                f"{classification.strategy}: {classification.k} classes, "
                f"counts {classification.counts(values).tolist()}"
            )

        layer.data.plot(color=facecolors, **plot_kwargs)

        if show_legend:
            if isinstance(classification, ContinuousScale):
                self._add_colorbar(ax, classification, cmap, style)
            else:
                self._add_class_legend(ax, classification, cmap, style)

    def _class_colors(
        self,
        values: np.ndarray,
        breaks: Breaks,
        cmap: mcolors.Colormap,
        style: MapStyle
    ) -> List[Any]:
        colors = class_colors(cmap, breaks.k)
        classes = breaks.classify(values)
        return [
            colors[c] if c >= 0 else mcolors.to_rgba(style.missing_color)
            for c in classes
        ]

    def _continuous_colors(
        self,
        values: np.ndarray,
        scale: ContinuousScale,
        cmap: mcolors.Colormap,
        style: MapStyle
    ) -> List[Any]:
        positions = scale(values)
        return [
            mcolors.to_rgba(style.missing_color) if np.isnan(p) else cmap(p)
            for p in positions
        ]

    def _add_class_legend(
        self,
        ax: Axes,
        breaks: Breaks,
        cmap: mcolors.Colormap,
        style: MapStyle
    ):
        colors = class_colors(cmap, breaks.k)
        handles = [
            Patch(facecolor=color, edgecolor=style.edge_color, label=label)
            for color, label in zip(colors, breaks.labels(style.legend_format))
        ]
        legend = ax.legend(
            handles=handles,
            title=style.legend_label,
            loc=style.legend_loc,
            frameon=False,
            fontsize=8,
            title_fontsize=9
        )
        ax.add_artist(legend)

    def _add_colorbar(
        self,
        ax: Axes,
        scale: ContinuousScale,
        cmap: mcolors.Colormap,
        style: MapStyle
    ):
        mappable = plt.cm.ScalarMappable(norm=scale.norm, cmap=cmap)
        mappable.set_array([])
        colorbar = ax.get_figure().colorbar(mappable, ax=ax, shrink=0.6)
        if style.legend_label:
            colorbar.set_label(style.legend_label)

    def choropleth(
        self,
        data: gpd.GeoDataFrame,
        value_column: str,
        strategy: Optional[ClassificationStrategy] = None,
        k: Optional[int] = None,
        title: Optional[str] = None,
        colormap: Colormap = ColorScale.YELLOW_ORANGE_RED,
        legend_label: Optional[str] = None,
        figsize: Tuple[float, float] = (10, 10),
        ax: Optional[Axes] = None
    ) -> Tuple[Figure, Axes]:
        """Create a choropleth map with minimal configuration.

        Args:
            data: GeoDataFrame with values to visualize
            value_column: Column containing numeric values
            strategy: Classification strategy (quantile if omitted)
            k: Number of classes
            title: Map title
            colormap: Color scale to use
            legend_label: Title of the legend
            figsize: Figure size in inches
            ax: Existing axes to draw on

        Returns:
            Tuple of (Figure, Axes)

        Example:
            >>> viz = MapVisualizer()
            >>> fig, ax = viz.choropleth(
            ...     data=lsoas,
            ...     value_column="pct_qualified",
            ...     strategy=NaturalBreaks(),
            ...     k=5,
            ...     title="Level 4 qualifications"
            ... )
        """
        style = MapStyle(
            colormap=colormap,
            title=title,
            legend_label=legend_label or value_column,
            figsize=figsize
        )
        return self.plot(data, value_column, strategy, k, style, ax=ax)

    def save(
        self,
        filepath: Union[str, Path],
        fig: Optional[Figure] = None,
        dpi: int = 150,
        **kwargs
    ):
        """Save the visualization to a file.

        Args:
            filepath: Output file path
            fig: Figure to save (uses current figure if None)
            dpi: Resolution in dots per inch
            **kwargs: Additional arguments passed to savefig
        """
        if fig is None:
            fig = plt.gcf()

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(
            filepath,
            dpi=dpi,
            bbox_inches='tight',
            **kwargs
        )
        logger.info(f"Saved map to {filepath}")


def plot_map(
    data: gpd.GeoDataFrame,
    value_column: str,
    strategy: Optional[ClassificationStrategy] = None,
    k: Optional[int] = None,
    title: Optional[str] = None,
    colormap: Colormap = "YlOrRd",
    figsize: Tuple[float, float] = (10, 10),
    save_path: Optional[str] = None
) -> Tuple[Figure, Axes]:
    """Convenience function to quickly plot a choropleth map.

    Example:
        >>> fig, ax = plot_map(
        ...     data=lsoas,
        ...     value_column="pct_qualified",
        ...     strategy=Pretty(),
        ...     title="Level 4 qualifications"
        ... )
    """
    viz = MapVisualizer()
    fig, ax = viz.choropleth(
        data=data,
        value_column=value_column,
        strategy=strategy,
        k=k,
        title=title,
        colormap=colormap,
        figsize=figsize
    )

    if save_path:
        viz.save(save_path, fig)

    return fig, ax


def compare_maps(
    data: gpd.GeoDataFrame,
    value_column: str,
    strategies: List[Tuple[ClassificationStrategy, str]],
    k: Optional[int] = None,
    ncols: int = 2,
    figsize: Optional[Tuple[float, float]] = None,
    colormap: Colormap = "YlOrRd"
) -> Tuple[Figure, List[Axes]]:
    """Draw the same column under several classifications, side by side.

    Args:
        data: GeoDataFrame with values to visualize
        value_column: Column containing numeric values
        strategies: List of (strategy, title) tuples
        k: Number of classes for every map
        ncols: Number of columns in the grid
        figsize: Figure size (auto-calculated if None)
        colormap: Colormap to use for all maps

    Returns:
        Tuple of (Figure, list of Axes)

    Example:
        >>> fig, axes = compare_maps(
        ...     lsoas, "pct_qualified",
        ...     [(Quantile(), "Quantile"), (NaturalBreaks(), "Natural breaks")],
        ... )
    """
    n = len(strategies)
    nrows = (n + ncols - 1) // ncols

    if figsize is None:
        figsize = (6 * ncols, 5 * nrows)

    fig, axes = plt.subplots(nrows, ncols, figsize=figsize)
    axes = list(np.atleast_1d(axes).flatten())

    viz = MapVisualizer()

    for i, (strategy, title) in enumerate(strategies):
        style = MapStyle(
            colormap=colormap,
            title=title,
            legend_label=value_column,
            figsize=figsize
        )
        viz.plot(data, value_column, strategy, k, style, ax=axes[i])

    # Hide unused axes
    for i in range(n, len(axes)):
        axes[i].set_visible(False)

    fig.tight_layout()
    return fig, axes[:n]
