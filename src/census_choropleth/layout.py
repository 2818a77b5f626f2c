"""
Map furniture: borders, north arrow, scale bar, credits and colour ramps.

All helpers draw onto an existing Matplotlib axes holding a map in a
projected coordinate system measured in metres (e.g. British National Grid).
"""

from typing import Optional, Sequence, Tuple

import geopandas as gpd
import matplotlib.colors as mcolors
from matplotlib.axes import Axes
from matplotlib.patches import Rectangle
from loguru import logger

from census_choropleth.classify import nice_number


UNIT_METRES = {
    "m": 1.0,
    "km": 1000.0,
    "mi": 1609.344,
}


def add_borders(
    ax: Axes,
    data: gpd.GeoDataFrame,
    dissolve_by: Optional[str] = None,
    color: str = "black",
    linewidth: float = 1.0,
    zorder: int = 3
) -> gpd.GeoDataFrame:
    """Outline the study area, or each group of areas.

    Args:
        ax: Axes holding the map
        data: Areas to outline
        dissolve_by: Column grouping areas into larger units (e.g. borough);
                     the whole extent is outlined if None
        color: Line color
        linewidth: Line width
        zorder: Drawing order

    Returns:
        The dissolved outlines
    """
    if dissolve_by is not None and dissolve_by not in data.columns:
        raise ValueError(
            f"Column '{dissolve_by}' not found. "
            f"Available columns: {list(data.columns)}"
        )

    outline = data.dissolve(by=dissolve_by) if dissolve_by else data.dissolve()
    outline.boundary.plot(ax=ax, color=color, linewidth=linewidth, zorder=zorder)
    return outline


def add_north_arrow(
    ax: Axes,
    x: float = 0.95,
    y: float = 0.95,
    length: float = 0.08,
    fontsize: int = 12,
    color: str = "black"
):
    """Draw a north arrow with its tip at ``(x, y)`` in axes coordinates."""
    return ax.annotate(
        "N",
        xy=(x, y),
        xytext=(x, y - length),
        xycoords="axes fraction",
        textcoords="axes fraction",
        ha="center",
        va="center",
        fontsize=fontsize,
        fontweight="bold",
        arrowprops=dict(facecolor=color, edgecolor=color, width=4, headwidth=12),
    )


def add_scale_bar(
    ax: Axes,
    length: Optional[float] = None,
    units: str = "km",
    location: Tuple[float, float] = (0.05, 0.05),
    color: str = "black",
    fontsize: int = 8,
    crs=None
) -> float:
    """Draw a two-segment scale bar.

    Args:
        ax: Axes holding the map, with coordinates in metres
        length: Bar length in ``units``; about a fifth of the map width,
                rounded to a nice number, if None
        units: "m", "km" or "mi"
        location: Lower-left corner of the bar in axes coordinates
        color: Bar and label color
        fontsize: Label size
        crs: CRS of the map, used to warn about unprojected coordinates

    Returns:
        The bar length in ``units``
    """
    if units not in UNIT_METRES:
        raise ValueError(
            f"Unknown scale bar units '{units}'. Available units: {list(UNIT_METRES)}"
        )
    if crs is not None and not getattr(crs, "is_projected", True):
        logger.warning("Scale bar drawn on unprojected coordinates; distances will be wrong")

    factor = UNIT_METRES[units]
    x0, x1 = ax.get_xlim()
    y0, y1 = ax.get_ylim()
    width, height = x1 - x0, y1 - y0

    if length is None:
        length = nice_number(width / factor / 5)
    elif length <= 0:
        raise ValueError(f"Scale bar length must be positive, got {length}")

    bar = length * factor
    bar_height = height * 0.01
    x = x0 + location[0] * width
    y = y0 + location[1] * height

    ax.add_patch(Rectangle((x, y), bar / 2, bar_height,
                           facecolor=color, edgecolor=color, zorder=5))
    ax.add_patch(Rectangle((x + bar / 2, y), bar / 2, bar_height,
                           facecolor="white", edgecolor=color, zorder=5))

    label_y = y + bar_height * 1.5
    ax.text(x, label_y, "0", ha="center", va="bottom", fontsize=fontsize, color=color)
    ax.text(x + bar, label_y, f"{length:g} {units}",
            ha="center", va="bottom", fontsize=fontsize, color=color)
    return length


def add_credits(
    ax: Axes,
    text: str,
    x: float = 0.99,
    y: float = 0.01,
    fontsize: int = 7,
    color: str = "dimgray"
):
    """Write a source/credits line in the corner of the map."""
    return ax.text(
        x, y, text,
        transform=ax.transAxes,
        ha="right",
        va="bottom",
        fontsize=fontsize,
        color=color,
    )


def custom_colormap(
    colors: Sequence[str],
    name: str = "custom",
    n: int = 256
) -> mcolors.LinearSegmentedColormap:
    """Build a colour ramp that interpolates between ``colors``.

    Example:
        >>> ramp = custom_colormap(["#f7fbff", "#6baed6", "#08306b"], name="blues")
    """
    colors = list(colors)
    if len(colors) < 2:
        raise ValueError("A colour ramp needs at least two colours")
    return mcolors.LinearSegmentedColormap.from_list(name, colors, N=n)
