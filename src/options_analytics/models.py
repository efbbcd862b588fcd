"""Data models for option legs, Greeks and strategy analysis results."""

from dataclasses import dataclass, field, replace
from enum import Enum

import numpy as np

# Reported in place of a reward/risk ratio when either extreme is infinite
UNBOUNDED = "unbounded"


class OptionType(Enum):
    CALL = "call"
    PUT = "put"


class Side(Enum):
    BUY = "buy"
    SELL = "sell"


class GridStepPolicy(Enum):
    AUTO = "auto"
    FIXED = "fixed"


class PopMethod(Enum):
    LOGNORMAL = "lognormal"
    DELTA_HEURISTIC = "delta_heuristic"


def side_sign(side: Side) -> int:
    """Return +1 for buy (long), -1 for sell (short)."""
    return 1 if side == Side.BUY else -1


def intrinsic_value(option_type: OptionType, price, strike: float):
    """Per-share intrinsic value; ``price`` may be a scalar or numpy array."""
    if option_type == OptionType.CALL:
        return np.maximum(price - strike, 0.0)
    return np.maximum(strike - price, 0.0)


@dataclass(frozen=True)
class OptionLeg:
    """A single option leg within a strategy.

    ``premium`` is per share. ``implied_volatility`` and ``time_to_expiry``
    (years) are optional per-leg overrides of the analysis-level values.
    """

    strike: float
    option_type: OptionType
    side: Side
    premium: float = 0.0
    quantity: int = 1
    implied_volatility: float | None = None
    time_to_expiry: float | None = None

    @property
    def direction(self) -> int:
        """Return +1 for buy, -1 for sell."""
        return side_sign(self.side)


@dataclass(frozen=True)
class NormalizedLeg:
    """A validated leg with its sign and contract-scaled premium cash flow.

    ``premium_cash_flow`` is negative when cash is paid at entry (buy) and
    positive when received (sell).
    """

    leg: OptionLeg
    sign: int
    contract_multiplier: int
    premium_cash_flow: float

    @property
    def strike(self) -> float:
        return self.leg.strike

    @property
    def option_type(self) -> OptionType:
        return self.leg.option_type

    @property
    def premium(self) -> float:
        return self.leg.premium

    @property
    def quantity(self) -> int:
        return self.leg.quantity

    @property
    def scale(self) -> int:
        """Signed share count: sign x quantity x multiplier."""
        return self.sign * self.leg.quantity * self.contract_multiplier


@dataclass(frozen=True)
class UnderlyingPosition:
    """Shares of the underlying held alongside the option legs.

    Negative ``shares`` is a short stock position. Profit at price P is
    ``shares * (P - entry_price)``.
    """

    shares: int
    entry_price: float

    def profit(self, prices):
        return self.shares * (np.asarray(prices, dtype=float) - self.entry_price)


@dataclass(frozen=True)
class Greeks:
    """Theoretical price and sensitivities of a single option.

    theta is per calendar day, vega per 1 vol point, rho per 1 rate point.
    """

    price: float
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float
    implied_volatility: float = 0.0

    @classmethod
    def zero(cls) -> "Greeks":
        return cls(price=0.0, delta=0.0, gamma=0.0, theta=0.0, vega=0.0, rho=0.0)

    def scaled(self, factor: float) -> "Greeks":
        """Scale every sensitivity; implied volatility is not a quantity."""
        return replace(
            self,
            price=self.price * factor,
            delta=self.delta * factor,
            gamma=self.gamma * factor,
            theta=self.theta * factor,
            vega=self.vega * factor,
            rho=self.rho * factor,
        )

    def to_dict(self) -> dict:
        return {
            "price": self.price,
            "delta": self.delta,
            "gamma": self.gamma,
            "theta": self.theta,
            "vega": self.vega,
            "rho": self.rho,
            "implied_volatility": self.implied_volatility,
        }


@dataclass(frozen=True)
class PayoffPoint:
    """Strategy-wide profit at a single underlying price."""

    price: float
    profit: float


@dataclass
class StrategyAnalysisResult:
    """Aggregate output of a strategy analysis.

    ``max_profit`` / ``max_loss`` are ``math.inf`` / ``-math.inf`` when
    unbounded. ``reward_to_risk`` is a float, ``UNBOUNDED``, or None when
    the ratio is undefined (no risk).
    """

    points: list[PayoffPoint] = field(default_factory=list)
    max_profit: float = 0.0
    max_loss: float = 0.0
    breakeven_points: list[float] = field(default_factory=list)
    net_greeks: Greeks = field(default_factory=Greeks.zero)
    reward_to_risk: float | str | None = 0.0
    probability_of_profit: float = 0.0
    pop_method: PopMethod | None = None
    pop_low_confidence: bool = False
    net_premium: float = 0.0
    leg_greeks: list[Greeks] = field(default_factory=list)
    current_price: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.points


@dataclass
class StrategyValidation:
    """Shape check of a leg list against a named strategy."""

    strategy: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
        }
