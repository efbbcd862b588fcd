"""Strategy analysis engine: legs in, StrategyAnalysisResult out.

``StrategyAnalyzer`` holds nothing but its immutable EngineConfig, so one
instance can serve concurrent callers. Every public method either returns
a complete result or raises an AnalyticsError subclass.
"""

import logging
import math
from collections.abc import Sequence

from .errors import InvalidInput
from .legs import normalize_all
from .models import (
    Greeks,
    NormalizedLeg,
    OptionLeg,
    OptionType,
    PayoffPoint,
    StrategyAnalysisResult,
    UnderlyingPosition,
)
from .payoff import (
    before_expiry_valuation,
    build_curve,
    build_price_grid,
    leg_volatility,
)
from .pricer import price_option
from .risk import summarize
from .settings import EngineConfig

logger = logging.getLogger(__name__)


class StrategyAnalyzer:
    """Price option legs and analyze multi-leg strategies."""

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()

    def price(
        self,
        spot: float,
        strike: float,
        time_to_expiry: float,
        volatility: float | None,
        option_type: OptionType,
        risk_free_rate: float | None = None,
    ) -> Greeks:
        """Price a single contract, using the configured rate and fallback vol."""
        if volatility is None:
            volatility = self.config.fallback_volatility
        return price_option(
            spot, strike, time_to_expiry, volatility, self._rate(risk_free_rate),
            option_type, self.config.dividend_yield,
        )

    def normalize(self, legs: Sequence[OptionLeg | NormalizedLeg]) -> list[NormalizedLeg]:
        return normalize_all(legs, self.config.contract_multiplier)

    def leg_greeks(
        self,
        legs: Sequence[NormalizedLeg],
        current_price: float,
        time_to_expiry: float | None = None,
        volatility: float | None = None,
        risk_free_rate: float | None = None,
        known: Sequence[Greeks | None] | None = None,
    ) -> list[Greeks]:
        """Per-leg (unscaled) Greeks; entries already in ``known`` are reused."""
        if known is not None and len(known) != len(legs):
            raise InvalidInput(
                f"Greeks count mismatch: {len(legs)} legs but {len(known)} Greeks"
            )
        rate = self._rate(risk_free_rate)
        result = []
        for i, leg in enumerate(legs):
            if known is not None and known[i] is not None:
                result.append(known[i])
                continue
            result.append(price_option(
                current_price,
                leg.strike,
                self._leg_expiry(leg, time_to_expiry),
                leg_volatility(leg, volatility, self.config.fallback_volatility),
                rate,
                leg.option_type,
                self.config.dividend_yield,
            ))
        return result

    def analyze(
        self,
        legs: Sequence[OptionLeg | NormalizedLeg],
        current_price: float,
        time_to_expiry: float | None = None,
        volatility: float | None = None,
        risk_free_rate: float | None = None,
        price_range: tuple[float, float] | None = None,
        step: float | None = None,
        leg_greeks: Sequence[Greeks | None] | None = None,
        underlying: UnderlyingPosition | None = None,
    ) -> StrategyAnalysisResult:
        """Analyze a strategy at expiration.

        Risk metrics are always computed on the automatic grid, which spans
        every strike. An explicit ``price_range`` or ``step`` only changes
        the reported ``points``.

        Args:
            legs: Strategy legs; an empty list yields a neutral result.
            current_price: Current underlying price.
            time_to_expiry: Years to expiry for legs without their own.
            volatility: Implied vol for legs without their own.
            risk_free_rate: Overrides the configured rate.
            price_range: Explicit (low, high) bounds for the reported curve.
            step: Explicit step for the reported curve.
            leg_greeks: Optional precomputed Greeks per leg (None to price).
            underlying: Shares held with the legs, e.g. for a covered call.

        Raises:
            InvalidLeg, InvalidInput, MissingVolatility, GridTooLarge.
        """
        normalized = self.normalize(legs)
        if not normalized:
            logger.debug("Empty strategy, returning neutral result")
            return StrategyAnalysisResult(current_price=current_price)

        self._check_price(current_price)
        self._check_underlying(underlying)
        rate = self._rate(risk_free_rate)

        greeks = self.leg_greeks(
            normalized, current_price, time_to_expiry, volatility, rate, known=leg_greeks,
        )
        grid = build_price_grid(normalized, current_price, self.config)
        curve = build_curve(normalized, grid, underlying=underlying)
        points = None
        if price_range is not None or step is not None:
            display = build_price_grid(normalized, current_price, self.config, price_range, step)
            points = build_curve(normalized, display, underlying=underlying)
        horizon = min(self._leg_expiry(leg, time_to_expiry) for leg in normalized)

        logger.debug("Analyzing %d legs at %.4f on %d grid points", len(normalized), current_price, len(grid))
        return summarize(
            curve, normalized, greeks, current_price, self.config, horizon, rate,
            underlying=underlying, points=points,
        )

    def curve_before_expiry(
        self,
        legs: Sequence[OptionLeg | NormalizedLeg],
        current_price: float,
        years_forward: float,
        time_to_expiry: float | None = None,
        volatility: float | None = None,
        risk_free_rate: float | None = None,
        price_range: tuple[float, float] | None = None,
        step: float | None = None,
        underlying: UnderlyingPosition | None = None,
    ) -> list[PayoffPoint]:
        """Payoff curve ``years_forward`` from now, valuing legs with Black-Scholes.

        Uses the same grid as ``analyze`` so the two curves line up.
        """
        normalized = self.normalize(legs)
        if not normalized:
            return []

        self._check_price(current_price)
        self._check_underlying(underlying)
        for leg in normalized:
            self._leg_expiry(leg, time_to_expiry)

        valuation = before_expiry_valuation(
            time_to_expiry if time_to_expiry is not None else 0.0,
            years_forward,
            volatility,
            self._rate(risk_free_rate),
            self.config.dividend_yield,
            self.config.fallback_volatility,
        )
        grid = build_price_grid(normalized, current_price, self.config, price_range, step)
        return build_curve(normalized, grid, valuation, underlying)

    def _rate(self, risk_free_rate: float | None) -> float:
        return self.config.risk_free_rate if risk_free_rate is None else risk_free_rate

    @staticmethod
    def _leg_expiry(leg: NormalizedLeg, time_to_expiry: float | None) -> float:
        value = leg.leg.time_to_expiry if leg.leg.time_to_expiry is not None else time_to_expiry
        if value is None:
            raise InvalidInput(
                f"No time to expiry for {leg.option_type.value} strike {leg.strike}"
            )
        if not math.isfinite(value) or value < 0:
            raise InvalidInput(f"time to expiry must be non-negative, got {value!r}")
        return value

    @staticmethod
    def _check_price(current_price: float) -> None:
        try:
            valid = math.isfinite(current_price) and current_price > 0
        except TypeError:
            valid = False
        if not valid:
            raise InvalidInput(f"current price must be positive, got {current_price!r}")

    @staticmethod
    def _check_underlying(underlying: UnderlyingPosition | None) -> None:
        if underlying is None:
            return
        shares, entry = underlying.shares, underlying.entry_price
        if not isinstance(shares, int) or isinstance(shares, bool):
            raise InvalidInput(f"underlying shares must be a whole number, got {shares!r}")
        try:
            valid = math.isfinite(entry) and entry > 0
        except TypeError:
            valid = False
        if not valid:
            raise InvalidInput(f"underlying entry price must be positive, got {entry!r}")
