"""
Class break computation for choropleth legends.

This module turns a numeric sample (one value per area) into the class
boundaries used to shade a choropleth map. Every classification style is a
``ClassificationStrategy`` with a single ``compute_breaks`` method:

    Quantile        classes holding roughly equal numbers of areas
    Fixed           boundaries supplied by the caller
    Pretty          equal-width classes on round numbers
    NaturalBreaks   Fisher-Jenks optimal partition
    HeadTails       recursive mean splits for heavy-tailed data
    Continuous      min-max (or log) scaling for gradient fills

Discrete strategies return ``Breaks``; ``Continuous`` returns a
``ContinuousScale``. Classes are half-open intervals ``[b_i, b_i+1)`` with the
last interval closed so that the maximum is always classified.

Example:
    >>> breaks = compute_breaks(values, k=5, strategy=Quantile())
    >>> breaks.labels()
    ['1.0 to 20.8', '20.8 to 40.6', ...]
    >>> compute_breaks(values, k=5, strategy="jenks").tolist()
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type, Union

import matplotlib.colors as mcolors
import numpy as np
from loguru import logger

from census_choropleth.errors import InvalidInputError, StrategyUnsupportedError


DEFAULT_CLASS_COUNT = 5


def _prepare_sample(sample: Any) -> np.ndarray:
    """Return the finite values of ``sample`` as a sorted float array.

    NaN marks a missing value and is dropped. Infinite values are rejected.
    """
    try:
        values = np.asarray(sample, dtype=float).ravel()
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Sample must be numeric: {exc}") from exc

    missing = np.isnan(values)
    if missing.any():
        logger.debug(f"Dropping {int(missing.sum())} missing values before classification")
        values = values[~missing]

    if values.size == 0:
        raise InvalidInputError("Cannot classify an empty sample")
    if not np.isfinite(values).all():
        raise InvalidInputError("Sample contains infinite values")

    return np.sort(values)


def _resolve_class_count(k: Optional[int], available: Optional[int] = None) -> int:
    """Validate ``k`` against the number of distinct values on offer."""
    if k is None:
        k = DEFAULT_CLASS_COUNT
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
        raise InvalidInputError(f"Class count must be an integer, got {k!r}")
    if k < 1:
        raise InvalidInputError(f"Class count must be at least 1, got {k}")
    if available is not None and k > available:
        raise InvalidInputError(
            f"Cannot build {k} classes from {available} distinct values"
        )
    return int(k)


def assign_classes(
    values: Any,
    breaks: Union["Breaks", Sequence[float], np.ndarray],
    clip: bool = False
) -> np.ndarray:
    """Map each value to the index of the class that contains it.

    Args:
        values: Values to classify (scalar or array-like)
        breaks: Class boundaries, either a ``Breaks`` or a plain sequence
        clip: Put values outside the break range in the first/last class
              instead of marking them unclassified

    Returns:
        Integer array of class indices. Missing (NaN) values, and values out
        of range when ``clip`` is False, get ``-1``.
    """
    if isinstance(breaks, Breaks):
        edges = breaks.values
    else:
        edges = np.asarray(breaks, dtype=float)

    if edges.ndim != 1 or edges.size < 2:
        raise InvalidInputError("At least two breaks are needed to define a class")

    data = np.asarray(values, dtype=float)
    k = edges.size - 1

    idx = np.searchsorted(edges, data, side="right") - 1
    # The upper bound closes the last interval
    idx = np.where(data == edges[-1], k - 1, idx)

    if clip:
        idx = np.clip(idx, 0, k - 1)
    else:
        outside = (data < edges[0]) | (data > edges[-1])
        idx = np.where(outside, -1, idx)

    idx = np.where(np.isnan(data), -1, idx)
    return idx.astype(int)


@dataclass(frozen=True, eq=False)
class Breaks:
    """Ordered class boundaries produced by a discrete strategy.

    Attributes:
        values: Boundaries ``b0 <= b1 <= ... <= bk``
        strategy: Name of the strategy that produced them
        clip: Whether out-of-range values fold into the end classes
    """
    values: np.ndarray
    strategy: str
    clip: bool = False

    def __post_init__(self):
        edges = np.array(self.values, dtype=float)
        edges.setflags(write=False)
        object.__setattr__(self, "values", edges)

    @property
    def k(self) -> int:
        """Number of classes."""
        return self.values.size - 1

    @property
    def lower(self) -> float:
        return float(self.values[0])

    @property
    def upper(self) -> float:
        return float(self.values[-1])

    def __len__(self) -> int:
        return self.values.size

    def __iter__(self):
        return iter(self.values.tolist())

    def __repr__(self) -> str:
        return f"Breaks(strategy={self.strategy!r}, values={self.values.tolist()})"

    def tolist(self) -> List[float]:
        return self.values.tolist()

    def classify(self, values: Any) -> np.ndarray:
        """Class index per value (see ``assign_classes``)."""
        return assign_classes(values, self.values, clip=self.clip)

    def counts(self, values: Any) -> np.ndarray:
        """Number of values falling in each class."""
        idx = self.classify(values)
        idx = np.atleast_1d(idx)
        return np.bincount(idx[idx >= 0], minlength=self.k)

    def labels(self, fmt: str = "{:,.1f}", sep: str = " to ") -> List[str]:
        """Legend labels, one per class.

        Args:
            fmt: Format string applied to each boundary
            sep: Text placed between the lower and upper boundary

        Returns:
            List of labels such as ``"20.0 to 40.0"``
        """
        return [
            f"{fmt.format(lo)}{sep}{fmt.format(hi)}"
            for lo, hi in zip(self.values[:-1], self.values[1:])
        ]


class Normalization(Enum):
    """Value scaling used by continuous colour ramps."""
    LINEAR = "linear"
    LOG = "log"


@dataclass(frozen=True)
class ContinuousScale:
    """Maps values onto ``[0, 1]`` for gradient colouring.

    Attributes:
        vmin: Value mapped to 0
        vmax: Value mapped to 1
        normalization: Linear or logarithmic scaling
    """
    vmin: float
    vmax: float
    normalization: Normalization = Normalization.LINEAR
    strategy: str = "continuous"

    @property
    def norm(self) -> mcolors.Normalize:
        """Matplotlib normalizer equivalent to this scale."""
        if self.normalization is Normalization.LOG:
            return mcolors.LogNorm(vmin=self.vmin, vmax=self.vmax, clip=True)
        return mcolors.Normalize(vmin=self.vmin, vmax=self.vmax, clip=True)

    @property
    def values(self) -> np.ndarray:
        """End points of the scale, usable as legend ticks."""
        return np.array([self.vmin, self.vmax])

    def __call__(self, values: Any) -> np.ndarray:
        data = np.ma.masked_invalid(np.asarray(values, dtype=float))
        scaled = self.norm(data)
        return np.ma.filled(np.ma.asarray(scaled, dtype=float), np.nan)


class ClassificationStrategy(ABC):
    """A way of choosing class boundaries from a sample."""

    name: str = ""

    @abstractmethod
    def compute_breaks(
        self,
        sample: Any,
        k: Optional[int] = None
    ) -> Union[Breaks, ContinuousScale]:
        """Compute class boundaries for ``sample``.

        Args:
            sample: Numeric values, one per area. NaN marks missing data.
            k: Requested number of classes

        Raises:
            InvalidInputError: If the sample or options cannot be classified
        """


@dataclass
class Quantile(ClassificationStrategy):
    """Breaks at the ``i/k`` quantiles of the sample.

    Quantiles use linear interpolation between order statistics (numpy's
    ``"linear"`` method). Dense ties can produce repeated breaks, leaving
    some classes empty.
    """

    name = "quantile"

    def compute_breaks(self, sample: Any, k: Optional[int] = None) -> Breaks:
        data = _prepare_sample(sample)
        k = _resolve_class_count(k, np.unique(data).size)

        probs = np.linspace(0.0, 1.0, k + 1)
        edges = np.quantile(data, probs, method="linear")
        # Interpolation rounding must never reorder the breaks
        edges = np.maximum.accumulate(edges)
        return Breaks(edges, self.name)


class OutOfRange(Enum):
    """What to do with sample values outside fixed breaks."""
    RAISE = "raise"
    CLIP = "clip"


@dataclass
class Fixed(ClassificationStrategy):
    """Caller-supplied breaks, returned unmodified.

    Attributes:
        breaks: Strictly increasing boundaries, at least two
        out_of_range: Reject samples outside the breaks, or clip them into
                      the end classes
    """
    breaks: Sequence[float]
    out_of_range: Union[OutOfRange, str] = OutOfRange.RAISE

    name = "fixed"

    def __post_init__(self):
        if not isinstance(self.out_of_range, OutOfRange):
            try:
                self.out_of_range = OutOfRange(str(self.out_of_range).lower())
            except ValueError:
                raise InvalidInputError(
                    f"Unknown out-of-range policy '{self.out_of_range}'. "
                    f"Available policies: {[p.value for p in OutOfRange]}"
                ) from None

    def compute_breaks(self, sample: Any, k: Optional[int] = None) -> Breaks:
        data = _prepare_sample(sample)

        try:
            edges = np.asarray(self.breaks, dtype=float).ravel()
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Fixed breaks must be numeric: {exc}") from exc

        if edges.size < 2:
            raise InvalidInputError("Fixed breaks need at least two values")
        if not np.isfinite(edges).all():
            raise InvalidInputError("Fixed breaks must be finite")
        if np.any(np.diff(edges) <= 0):
            raise InvalidInputError(
                f"Fixed breaks must be strictly increasing: {edges.tolist()}"
            )

        if k is not None:
            k = _resolve_class_count(k)
            if k != edges.size - 1:
                raise InvalidInputError(
                    f"{edges.size} fixed breaks define {edges.size - 1} classes, "
                    f"but {k} were requested"
                )

        outside = int(((data < edges[0]) | (data > edges[-1])).sum())
        if outside:
            if self.out_of_range is OutOfRange.RAISE:
                raise InvalidInputError(
                    f"{outside} values fall outside the fixed breaks "
                    f"[{edges[0]}, {edges[-1]}]"
                )
            logger.warning(
                f"{outside} values outside [{edges[0]}, {edges[-1]}] "
                "are clipped into the end classes"
            )

        return Breaks(edges, self.name, clip=self.out_of_range is OutOfRange.CLIP)


def nice_number(value: float) -> float:
    """Largest number of the form ``{1, 2, 5} x 10^e`` not exceeding ``value``."""
    if not np.isfinite(value) or value <= 0:
        raise InvalidInputError(f"Cannot round {value} to a nice number")

    unit = 10.0 ** math.floor(math.log10(value))
    if unit * 10 <= value:
        unit *= 10
    elif unit > value:
        unit /= 10

    for multiple in (5.0, 2.0, 1.0):
        if multiple * unit <= value:
            return multiple * unit
    return unit


def _step_edges(lo: float, hi: float, step: float, min_intervals: int = 1) -> np.ndarray:
    """Multiples of ``step`` covering ``[lo, hi]``."""
    decimals = max(0, -math.floor(math.log10(step)))
    start = math.floor(lo / step + 1e-10)
    stop = math.ceil(hi / step - 1e-10)
    stop = max(stop, start + min_intervals)

    edges = np.round(np.arange(start, stop + 1) * step, decimals)
    if edges[0] > lo:
        edges = np.concatenate([[np.round(edges[0] - step, decimals)], edges])
    if edges[-1] < hi:
        edges = np.concatenate([edges, [np.round(edges[-1] + step, decimals)]])
    return edges


@dataclass
class Pretty(ClassificationStrategy):
    """Equal-width breaks on round numbers.

    The step is a power-of-ten multiple of 1, 2 or 5: the coarsest such step
    that still yields at least ``k`` intervals. The first and last breaks are
    rounded outward, so the result may hold more than ``k + 1`` values.
    """

    name = "pretty"

    def compute_breaks(self, sample: Any, k: Optional[int] = None) -> Breaks:
        data = _prepare_sample(sample)
        k = _resolve_class_count(k)

        lo, hi = float(data[0]), float(data[-1])
        span = hi - lo if hi > lo else (abs(lo) or 1.0)

        unit = 10.0 ** math.floor(math.log10(span / k))
        for step in (10 * unit, 5 * unit, 2 * unit, unit):
            edges = _step_edges(lo, hi, step)
            if edges.size - 1 >= k:
                break
        else:
            edges = _step_edges(lo, hi, unit, min_intervals=k)

        return Breaks(edges, self.name)


def _fisher_jenks(values: np.ndarray, weights: np.ndarray, k: int) -> List[int]:
    """Optimal contiguous partition of sorted ``values`` into ``k`` groups.

    Minimizes the total weighted within-group sum of squared deviations.
    ``cost[j, i]`` is the best cost of splitting the first ``i`` values into
    ``j`` groups. The optimal split point is monotone in ``i``, so each layer
    is filled by divide and conquer over prefix sums.

    Returns:
        Start index of each group, beginning with 0
    """
    n = values.size
    centered = values - np.average(values, weights=weights)

    w = np.concatenate([[0.0], np.cumsum(weights, dtype=float)])
    s1 = np.concatenate([[0.0], np.cumsum(weights * centered)])
    s2 = np.concatenate([[0.0], np.cumsum(weights * centered * centered)])

    def ssd(start, end):
        total = s1[end] - s1[start]
        return np.maximum((s2[end] - s2[start]) - total * total / (w[end] - w[start]), 0.0)

    cost = np.full((k + 1, n + 1), np.inf)
    split = np.zeros((k + 1, n + 1), dtype=int)
    cost[1, 1:] = ssd(0, np.arange(1, n + 1))

    for j in range(2, k + 1):
        if j == k:
            candidates = np.arange(j - 1, n)
            totals = cost[j - 1, candidates] + ssd(candidates, n)
            best = int(np.argmin(totals))
            cost[j, n] = totals[best]
            split[j, n] = candidates[best]
            break

        stack = [(j, n, j - 1, n - 1)]
        while stack:
            lo, hi, opt_lo, opt_hi = stack.pop()
            if lo > hi:
                continue
            mid = (lo + hi) // 2
            candidates = np.arange(max(j - 1, opt_lo), min(mid - 1, opt_hi) + 1)
            totals = cost[j - 1, candidates] + ssd(candidates, mid)
            best = int(np.argmin(totals))
            cost[j, mid] = totals[best]
            split[j, mid] = candidates[best]
            stack.append((lo, mid - 1, opt_lo, int(candidates[best])))
            stack.append((mid + 1, hi, int(candidates[best]), opt_hi))

    starts = []
    end = n
    for j in range(k, 1, -1):
        end = int(split[j, end])
        starts.append(end)
    return [0] + starts[::-1]


@dataclass
class NaturalBreaks(ClassificationStrategy):
    """Fisher-Jenks natural breaks.

    Runs over distinct values weighted by their counts, so equal values always
    share a class. Each interior break lies halfway between the largest value
    of one class and the smallest value of the next.

    Attributes:
        max_sample: If set, classify an evenly spaced subsample of at most
                    this many sorted values (always keeping min and max)
    """
    max_sample: Optional[int] = None

    name = "jenks"

    def compute_breaks(self, sample: Any, k: Optional[int] = None) -> Breaks:
        data = _prepare_sample(sample)

        if self.max_sample is not None:
            if self.max_sample < 2:
                raise InvalidInputError(
                    f"max_sample must be at least 2, got {self.max_sample}"
                )
            if data.size > self.max_sample:
                positions = np.linspace(0, data.size - 1, self.max_sample)
                data = data[np.round(positions).astype(int)]
                logger.debug(f"Natural breaks computed on a {data.size}-value subsample")

        values, counts = np.unique(data, return_counts=True)
        k = _resolve_class_count(k, values.size)

        starts = _fisher_jenks(values, counts.astype(float), k)
        interior = [(values[s - 1] + values[s]) / 2.0 for s in starts[1:]]
        edges = [values[0], *interior, values[-1]]
        return Breaks(np.asarray(edges), self.name)


@dataclass
class HeadTails(ClassificationStrategy):
    """Head/tail breaks for heavy-tailed distributions.

    The sample is split at its mean; the head (values at or above the mean)
    is split again for as long as it holds less than ``threshold`` of the
    values being split. The class count is determined by the data.

    Attributes:
        threshold: Largest head proportion that still allows a split
        max_depth: Maximum number of splits
    """
    threshold: float = 0.4
    max_depth: int = 10

    name = "headtails"

    def compute_breaks(self, sample: Any, k: Optional[int] = None) -> Breaks:
        if not 0 < self.threshold < 1:
            raise InvalidInputError(
                f"Head/tails threshold must be between 0 and 1, got {self.threshold}"
            )
        if self.max_depth < 1:
            raise InvalidInputError(f"max_depth must be at least 1, got {self.max_depth}")

        data = _prepare_sample(sample)
        if k is not None:
            logger.debug(f"Head/tails ignores the requested class count ({k})")

        edges = [data[0]]
        current = data
        for _ in range(self.max_depth):
            # A constant run can have a float mean just above its values.
            if current[0] == current[-1]:
                break
            mean = current.mean()
            head = current[current >= mean]
            if head.size == 0 or head.size == current.size:
                break
            if head.size / current.size >= self.threshold:
                break
            edges.append(mean)
            current = head

        edges.append(data[-1])
        return Breaks(np.asarray(edges), self.name)


@dataclass
class Continuous(ClassificationStrategy):
    """Gradient colouring from the sample minimum to its maximum.

    Attributes:
        normalization: Linear or logarithmic scaling. Log scaling needs
                       strictly positive values.
    """
    normalization: Union[Normalization, str] = Normalization.LINEAR

    name = "continuous"

    def __post_init__(self):
        if not isinstance(self.normalization, Normalization):
            try:
                self.normalization = Normalization(str(self.normalization).lower())
            except ValueError:
                raise InvalidInputError(
                    f"Unknown normalization '{self.normalization}'. "
                    f"Available normalizations: {[n.value for n in Normalization]}"
                ) from None

    def compute_breaks(self, sample: Any, k: Optional[int] = None) -> ContinuousScale:
        data = _prepare_sample(sample)
        if self.normalization is Normalization.LOG and data[0] <= 0:
            raise InvalidInputError("Log normalization needs strictly positive values")
        return ContinuousScale(float(data[0]), float(data[-1]), self.normalization)


_STRATEGIES: Dict[str, Type[ClassificationStrategy]] = {
    "quantile": Quantile,
    "fixed": Fixed,
    "pretty": Pretty,
    "jenks": NaturalBreaks,
    "fisher_jenks": NaturalBreaks,
    "fisherjenks": NaturalBreaks,
    "natural_breaks": NaturalBreaks,
    "headtails": HeadTails,
    "head_tails": HeadTails,
    "cont": Continuous,
    "continuous": Continuous,
}


def available_strategies() -> List[str]:
    """Names accepted by ``strategy_from_name``."""
    return sorted(_STRATEGIES)


def strategy_from_name(name: str, **options: Any) -> ClassificationStrategy:
    """Build a strategy from its name.

    Args:
        name: Strategy name, e.g. ``"quantile"`` or ``"jenks"``
        **options: Strategy options, e.g. ``breaks=[0, 20, 40]`` for fixed

    Raises:
        StrategyUnsupportedError: If the name is unknown
        InvalidInputError: If the options do not fit the strategy
    """
    key = str(name).strip().lower().replace("-", "_")
    try:
        strategy_cls = _STRATEGIES[key]
    except KeyError:
        raise StrategyUnsupportedError(
            f"Unknown classification strategy '{name}'. "
            f"Available strategies: {available_strategies()}"
        ) from None

    try:
        return strategy_cls(**options)
    except TypeError as exc:
        raise InvalidInputError(f"Invalid options for '{name}' strategy: {exc}") from exc


def compute_breaks(
    sample: Any,
    k: Optional[int] = None,
    strategy: Union[str, ClassificationStrategy] = "quantile",
    **options: Any
) -> Union[Breaks, ContinuousScale]:
    """Compute class boundaries for a sample.

    Args:
        sample: Numeric values, one per area. NaN marks missing data.
        k: Number of classes (defaults to 5 where the strategy uses it)
        strategy: Strategy instance, or name resolved by ``strategy_from_name``
        **options: Strategy options, only valid together with a name

    Returns:
        ``Breaks`` for discrete strategies, ``ContinuousScale`` for continuous

    Example:
        >>> compute_breaks(range(1, 101), k=5).tolist()
        [1.0, 20.8, 40.6, 60.4, 80.2, 100.0]
        >>> compute_breaks(values, strategy="fixed", breaks=[0, 20, 40, 60, 80, 100])
    """
    if isinstance(strategy, ClassificationStrategy):
        if options:
            raise InvalidInputError(
                "Strategy options can only be given together with a strategy name"
            )
    else:
        strategy = strategy_from_name(strategy, **options)

    result = strategy.compute_breaks(sample, k)
    logger.debug(f"{strategy.name} breaks: {np.round(result.values, 4).tolist()}")
    return result


def goodness_of_variance_fit(sample: Any, breaks: Union[Breaks, Sequence[float]]) -> float:
    """Share of the sample's variance explained by the classes (1.0 is perfect)."""
    data = _prepare_sample(sample)
    classes = assign_classes(data, breaks, clip=True)

    total = float(((data - data.mean()) ** 2).sum())
    if total == 0:
        return 1.0

    within = 0.0
    for cls in np.unique(classes):
        members = data[classes == cls]
        within += float(((members - members.mean()) ** 2).sum())
    return 1.0 - within / total
