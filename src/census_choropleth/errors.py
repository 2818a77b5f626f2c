"""Exception hierarchy for classification and data preparation."""


class ChoroplethError(Exception):
    """Base class for errors raised by this package."""


class InvalidInputError(ChoroplethError, ValueError):
    """Sample, class count or strategy options cannot be classified."""


class StrategyUnsupportedError(ChoroplethError, ValueError):
    """No classification strategy is registered under the requested name."""


class JoinValidationError(ChoroplethError, ValueError):
    """The census table does not line up with the boundary geometries."""
