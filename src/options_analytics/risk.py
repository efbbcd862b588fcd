"""Reduce a payoff curve and per-leg Greeks into strategy risk metrics."""

import logging
import math
from collections.abc import Sequence

import numpy as np
from scipy.stats import norm

from .errors import InvalidInput
from .legs import net_premium
from .models import (
    UNBOUNDED,
    Greeks,
    NormalizedLeg,
    PayoffPoint,
    PopMethod,
    StrategyAnalysisResult,
    UnderlyingPosition,
)
from .payoff import profit_at
from .settings import EngineConfig

logger = logging.getLogger(__name__)

# Profit differences below this are float noise, not a slope
_SLOPE_TOL = 1e-9
_ZERO_TOL = 1e-9


def payoff_extrema(
    curve: Sequence[PayoffPoint],
    legs: Sequence[NormalizedLeg] = (),
    underlying: UnderlyingPosition | None = None,
) -> tuple[float, float]:
    """Return (max_profit, max_loss) for a curve.

    Finite extrema of a piecewise-linear payoff sit on grid points, since
    the grid contains every strike. Past the top of the grid the payoff is
    linear: a rising last segment means unbounded profit, a falling one
    unbounded loss. Below the grid the underlying is floored at zero, so
    when the grid starts at or below the lowest strike the profit at zero
    is included as a candidate extreme.
    """
    if not curve:
        return 0.0, 0.0

    prices = np.array([p.price for p in curve])
    profits = np.array([p.profit for p in curve])
    candidates = [profits]

    lowest_kink = min((leg.strike for leg in legs), default=prices[0])
    if (legs or underlying is not None) and 0 < prices[0] <= lowest_kink:
        candidates.append(np.array([profit_at(legs, 0.0, underlying=underlying)]))

    values = np.concatenate(candidates)
    max_profit = float(values.max())
    max_loss = float(values.min())

    if len(curve) >= 2:
        right_slope = (profits[-1] - profits[-2]) / (prices[-1] - prices[-2])
        if right_slope > _SLOPE_TOL:
            max_profit = math.inf
        elif right_slope < -_SLOPE_TOL:
            max_loss = -math.inf

    return max_profit, max_loss


def find_breakevens(curve: Sequence[PayoffPoint]) -> list[float]:
    """Prices separating profitable from unprofitable stretches of the curve.

    Sign changes between nonzero points are linearly interpolated. A run
    of zero-profit points is reported at each edge that borders a profit,
    so a zero-premium long call breaks even at its strike. Zero runs that
    touch only losses, and a single zero point with profit on both sides,
    are not crossings.
    """
    breakevens = []
    n = len(curve)
    i = 0
    while i < n:
        point = curve[i]
        if abs(point.profit) <= _ZERO_TOL:
            j = i
            while j + 1 < n and abs(curve[j + 1].profit) <= _ZERO_TOL:
                j += 1
            edges = []
            if i > 0 and curve[i - 1].profit > 0:
                edges.append(point.price)
            if j + 1 < n and curve[j + 1].profit > 0:
                edges.append(curve[j].price)
            if not (i == j and len(edges) == 2):
                breakevens.extend(edges)
            i = j + 1
            continue
        prev = curve[i - 1] if i > 0 else None
        if prev is not None and abs(prev.profit) > _ZERO_TOL and (prev.profit < 0) != (point.profit < 0):
            ratio = -prev.profit / (point.profit - prev.profit)
            breakevens.append(prev.price + (point.price - prev.price) * ratio)
        i += 1
    return breakevens


def net_greeks(
    legs: Sequence[NormalizedLeg],
    leg_greeks: Sequence[Greeks],
    underlying: UnderlyingPosition | None = None,
) -> Greeks:
    """Sum sign x quantity x multiplier x Greeks across legs.

    Always recomputed from the full leg list. Implied volatility of the
    aggregate is the quantity-weighted mean of the legs' vols. Shares of
    the underlying contribute one delta each.
    """
    if len(legs) != len(leg_greeks):
        raise InvalidInput(
            f"Greeks count mismatch: {len(legs)} legs but {len(leg_greeks)} Greeks"
        )
    if not legs:
        return Greeks.zero()

    total_price = 0.0
    total_delta = 0.0 if underlying is None else float(underlying.shares)
    total_gamma = 0.0
    total_theta = 0.0
    total_vega = 0.0
    total_rho = 0.0
    for leg, greeks in zip(legs, leg_greeks):
        scaled = greeks.scaled(leg.scale)
        total_price += scaled.price
        total_delta += scaled.delta
        total_gamma += scaled.gamma
        total_theta += scaled.theta
        total_vega += scaled.vega
        total_rho += scaled.rho

    total_qty = sum(leg.quantity for leg in legs)
    avg_vol = sum(leg.quantity * g.implied_volatility for leg, g in zip(legs, leg_greeks)) / total_qty

    return Greeks(
        price=total_price,
        delta=total_delta,
        gamma=total_gamma,
        theta=total_theta,
        vega=total_vega,
        rho=total_rho,
        implied_volatility=avg_vol,
    )


def reward_to_risk(max_profit: float, max_loss: float) -> float | str | None:
    """|max_profit / max_loss|, or UNBOUNDED, or None when there is no risk."""
    if math.isinf(max_profit) or math.isinf(max_loss):
        return UNBOUNDED
    if max_loss >= 0:
        return None
    if max_profit <= 0:
        return 0.0
    return abs(max_profit / max_loss)


def lognormal_tail_probability(
    spot: float,
    level: float,
    volatility: float,
    time_to_expiry: float,
    risk_free_rate: float,
    above: bool,
    dividend_yield: float = 0.0,
) -> float:
    """Risk-neutral probability that the price at expiry ends above/below ``level``."""
    if level <= 0:
        return 1.0 if above else 0.0
    drift = (risk_free_rate - dividend_yield) * time_to_expiry
    spread = volatility * math.sqrt(time_to_expiry)
    if spread == 0:
        forward = spot * math.exp(drift)
        finishes_above = forward > level
        return 1.0 if finishes_above == above else 0.0
    d2 = (math.log(spot / level) + drift - 0.5 * spread**2) / spread
    return float(norm.cdf(d2) if above else norm.cdf(-d2))


def delta_heuristic_pop(net_delta: float, contract_multiplier: int) -> float:
    """Coarse POP estimate: |net delta| in contract units, clipped to [0, 1]."""
    return min(1.0, abs(net_delta) / contract_multiplier)


def probability_of_profit(
    curve: Sequence[PayoffPoint],
    breakevens: Sequence[float],
    net: Greeks,
    current_price: float,
    time_to_expiry: float,
    risk_free_rate: float,
    config: EngineConfig,
) -> tuple[float, PopMethod, bool]:
    """Estimate probability of profit.

    Returns (probability, method used, low_confidence). The lognormal tail
    is used when the curve has a single breakeven; a curve with no
    breakeven is profitable everywhere or nowhere. Curves with several
    breakevens (butterflies, condors, straddles) fall back to the delta
    heuristic, which is flagged low-confidence.
    """
    if config.pop_method == PopMethod.DELTA_HEURISTIC or len(breakevens) > 1:
        pop = delta_heuristic_pop(net.delta, config.contract_multiplier)
        return pop, PopMethod.DELTA_HEURISTIC, True

    if not breakevens:
        profitable = all(p.profit > _ZERO_TOL for p in curve)
        return (1.0 if profitable else 0.0), PopMethod.LOGNORMAL, False

    profitable_above = curve[-1].profit > 0
    pop = lognormal_tail_probability(
        current_price,
        breakevens[0],
        net.implied_volatility,
        time_to_expiry,
        risk_free_rate,
        above=profitable_above,
        dividend_yield=config.dividend_yield,
    )
    return pop, PopMethod.LOGNORMAL, False


def summarize(
    curve: Sequence[PayoffPoint],
    legs: Sequence[NormalizedLeg],
    leg_greeks: Sequence[Greeks],
    current_price: float,
    config: EngineConfig,
    time_to_expiry: float,
    risk_free_rate: float,
    underlying: UnderlyingPosition | None = None,
    points: Sequence[PayoffPoint] | None = None,
) -> StrategyAnalysisResult:
    """Derive the full StrategyAnalysisResult from a curve and per-leg Greeks.

    Metrics always come from ``curve``, which must span every strike.
    ``points`` replaces it as the reported curve when the caller asked
    for a display range of its own.

    An empty leg list is a valid, neutral strategy, not an error.
    """
    if not legs:
        return StrategyAnalysisResult(current_price=current_price)

    net = net_greeks(legs, leg_greeks, underlying)
    max_profit, max_loss = payoff_extrema(curve, legs, underlying)
    breakevens = find_breakevens(curve)
    pop, pop_method, low_confidence = probability_of_profit(
        curve, breakevens, net, current_price, time_to_expiry, risk_free_rate, config,
    )

    logger.debug(
        "Summarized %d legs: max profit %s, max loss %s, %d breakevens, POP %.3f (%s)",
        len(legs), max_profit, max_loss, len(breakevens), pop, pop_method.value,
    )

    return StrategyAnalysisResult(
        points=list(curve if points is None else points),
        max_profit=max_profit,
        max_loss=max_loss,
        breakeven_points=breakevens,
        net_greeks=net,
        reward_to_risk=reward_to_risk(max_profit, max_loss),
        probability_of_profit=pop,
        pop_method=pop_method,
        pop_low_confidence=low_confidence,
        net_premium=net_premium(legs),
        leg_greeks=list(leg_greeks),
        current_price=current_price,
    )
