"""Payoff curves for multi-leg strategies.

A curve is the strategy's total profit evaluated on an ascending price
grid. The per-leg valuation is pluggable: ``expiry_value`` gives the
intrinsic (at-expiration) payoff, ``before_expiry_valuation`` prices each
leg with Black-Scholes at its remaining time to expiry. Both share the
same leg iteration in ``curve_profits``.
"""

import logging
import math
from collections.abc import Callable, Sequence

import numpy as np

from .errors import GridTooLarge, InvalidInput, MissingVolatility
from .models import (
    GridStepPolicy,
    NormalizedLeg,
    PayoffPoint,
    UnderlyingPosition,
    intrinsic_value,
)
from .pricer import black_scholes_price
from .settings import EngineConfig

logger = logging.getLogger(__name__)

# Per-share value of a leg at each grid price
Valuation = Callable[[NormalizedLeg, np.ndarray], np.ndarray]

# Grid prices are rounded so arange drift never produces near-duplicates
_GRID_DECIMALS = 8


def _is_positive(value) -> bool:
    try:
        return math.isfinite(value) and value > 0
    except TypeError:
        return False


def expiry_value(leg: NormalizedLeg, prices: np.ndarray) -> np.ndarray:
    """Intrinsic value of the leg at expiration."""
    return intrinsic_value(leg.option_type, prices, leg.strike)


def leg_volatility(
    leg: NormalizedLeg,
    volatility: float | None,
    fallback_volatility: float | None = None,
) -> float:
    """Pick the leg's own implied vol, else the analysis vol, else the fallback.

    Raises:
        MissingVolatility: If none of the three is available.
    """
    for candidate in (leg.leg.implied_volatility, volatility, fallback_volatility):
        if candidate is not None:
            return candidate
    raise MissingVolatility(
        f"No implied volatility for {leg.option_type.value} strike {leg.strike} "
        "and no fallback configured"
    )


def before_expiry_valuation(
    time_to_expiry: float,
    years_forward: float,
    volatility: float | None,
    risk_free_rate: float,
    dividend_yield: float = 0.0,
    fallback_volatility: float | None = None,
) -> Valuation:
    """Build a valuation that prices each leg ``years_forward`` from now.

    A leg's own ``time_to_expiry`` overrides the analysis-level one. Legs
    that have expired by the evaluation date fall back to intrinsic value.
    """
    if not math.isfinite(years_forward) or years_forward < 0:
        raise InvalidInput(f"years_forward must be non-negative, got {years_forward!r}")

    def value(leg: NormalizedLeg, prices: np.ndarray) -> np.ndarray:
        leg_t = leg.leg.time_to_expiry if leg.leg.time_to_expiry is not None else time_to_expiry
        remaining = max(0.0, leg_t - years_forward)
        sigma = leg_volatility(leg, volatility, fallback_volatility)
        return np.array([
            black_scholes_price(
                float(p), leg.strike, remaining, risk_free_rate, sigma,
                leg.option_type, dividend_yield,
            )
            if p > 0 else float(intrinsic_value(leg.option_type, 0.0, leg.strike))
            for p in prices
        ])

    return value


def build_price_grid(
    legs: Sequence[NormalizedLeg],
    current_price: float,
    config: EngineConfig,
    price_range: tuple[float, float] | None = None,
    step: float | None = None,
) -> np.ndarray:
    """Build the ascending, duplicate-free price grid for a strategy.

    Without an explicit range the grid runs from ``grid_range_pct`` below
    the lowest strike to the same fraction above the highest strike,
    widened to cover the current price. Every strike and the current price
    inside the range are inserted as exact grid points so payoff kinks are
    never stepped over.

    Raises:
        InvalidInput: For a bad range, step or current price.
        GridTooLarge: If the grid would exceed ``config.max_grid_points``.
    """
    if not _is_positive(current_price):
        raise InvalidInput(f"current price must be positive, got {current_price!r}")

    strikes = [leg.strike for leg in legs]

    if price_range is None:
        if not strikes:
            return np.array([], dtype=float)
        pct = config.grid_range_pct
        low = min(min(strikes) * (1 - pct), current_price)
        high = max(max(strikes) * (1 + pct), current_price)
    else:
        try:
            low, high = (float(bound) for bound in price_range)
        except (TypeError, ValueError):
            raise InvalidInput(f"price range must be a (low, high) pair, got {price_range!r}")
        if not (math.isfinite(low) and math.isfinite(high)) or low < 0 or low >= high:
            raise InvalidInput(f"price range must satisfy 0 <= low < high, got {price_range!r}")

    if step is None:
        if config.grid_step_policy == GridStepPolicy.FIXED:
            step = config.grid_step
        else:
            step = (high - low) / config.auto_grid_intervals
    if not _is_positive(step):
        raise InvalidInput(f"grid step must be positive, got {step!r}")

    intervals = (high - low) / step
    # Fail before allocating anything; a subnormal step overflows to inf
    if not math.isfinite(intervals) or intervals + 1 > config.max_grid_points:
        raise GridTooLarge(intervals + 2, config.max_grid_points)
    n_steps = math.floor(intervals + 1e-9)
    if n_steps + 2 > config.max_grid_points:
        raise GridTooLarge(n_steps + 2, config.max_grid_points)

    grid = low + step * np.arange(n_steps + 1)
    anchors = [p for p in [current_price, *strikes, high] if low <= p <= high]
    grid = np.union1d(
        np.round(grid, _GRID_DECIMALS),
        np.round(np.asarray(anchors, dtype=float), _GRID_DECIMALS),
    )

    if len(grid) > config.max_grid_points:
        raise GridTooLarge(len(grid), config.max_grid_points)

    logger.debug("Built price grid %.4f..%.4f step %.6f (%d points)", low, high, step, len(grid))
    return grid


def curve_profits(
    legs: Sequence[NormalizedLeg],
    prices: np.ndarray,
    valuation: Valuation = expiry_value,
    underlying: UnderlyingPosition | None = None,
) -> np.ndarray:
    """Total strategy profit at each price: sum of sign x qty x mult x (value - premium).

    Shares held in ``underlying`` add their linear profit on top.
    """
    prices = np.asarray(prices, dtype=float)
    total = np.zeros_like(prices)
    for leg in legs:
        total += leg.scale * (valuation(leg, prices) - leg.premium)
    if underlying is not None:
        total += underlying.profit(prices)
    return total


def build_curve(
    legs: Sequence[NormalizedLeg],
    grid: np.ndarray,
    valuation: Valuation = expiry_value,
    underlying: UnderlyingPosition | None = None,
) -> list[PayoffPoint]:
    """Evaluate the strategy on ``grid`` and return ascending PayoffPoints."""
    prices = np.asarray(grid, dtype=float)
    profits = curve_profits(legs, prices, valuation, underlying)
    return [PayoffPoint(price=float(p), profit=float(v)) for p, v in zip(prices, profits)]


def profit_at(
    legs: Sequence[NormalizedLeg],
    price: float,
    valuation: Valuation = expiry_value,
    underlying: UnderlyingPosition | None = None,
) -> float:
    """Strategy profit at a single underlying price."""
    return float(curve_profits(legs, np.array([float(price)]), valuation, underlying)[0])
