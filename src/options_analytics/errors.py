"""Error kinds raised by the analytics engine.

All derive from ``AnalyticsError`` (itself a ``ValueError``) so callers can
catch the whole family at an API boundary. None of them are transient:
the same input always fails the same way.
"""


class AnalyticsError(ValueError):
    """Base class for engine errors."""

    kind = "analytics_error"


class InvalidInput(AnalyticsError):
    """Non-finite, negative or out-of-domain numeric input."""

    kind = "invalid_input"


class InvalidLeg(AnalyticsError):
    """One or more OptionLeg invariant violations, reported together."""

    kind = "invalid_leg"

    def __init__(self, violations: list[str]):
        self.violations = list(violations)
        super().__init__("Invalid leg: " + "; ".join(self.violations))


class MissingVolatility(AnalyticsError):
    """Greeks requested without a volatility source and no fallback."""

    kind = "missing_volatility"


class GridTooLarge(AnalyticsError):
    """The requested price grid exceeds the configured point limit."""

    kind = "grid_too_large"

    def __init__(self, points: float, limit: int):
        self.points = points
        self.limit = limit
        super().__init__(
            f"Price grid would have {points:.0f} points, limit is {limit}"
        )
