"""Prebuilt leg lists for common option strategies.

Strikes and premiums default to fractions of the underlying price so a
template can be shown before any chain data is loaded; every value can
be overridden by keyword.
"""

from collections.abc import Callable, Sequence

from .errors import InvalidInput
from .models import OptionLeg, OptionType, Side, UnderlyingPosition
from .settings import DEFAULT_CONTRACT_MULTIPLIER


def bull_call_spread(
    underlying_price: float,
    long_strike: float | None = None,
    short_strike: float | None = None,
    long_premium: float | None = None,
    short_premium: float | None = None,
) -> list[OptionLeg]:
    S = underlying_price
    return [
        OptionLeg(long_strike or S * 0.98, OptionType.CALL, Side.BUY, long_premium or S * 0.03),
        OptionLeg(short_strike or S * 1.02, OptionType.CALL, Side.SELL, short_premium or S * 0.015),
    ]


def bear_put_spread(
    underlying_price: float,
    long_strike: float | None = None,
    short_strike: float | None = None,
    long_premium: float | None = None,
    short_premium: float | None = None,
) -> list[OptionLeg]:
    S = underlying_price
    return [
        OptionLeg(long_strike or S * 1.02, OptionType.PUT, Side.BUY, long_premium or S * 0.03),
        OptionLeg(short_strike or S * 0.98, OptionType.PUT, Side.SELL, short_premium or S * 0.015),
    ]


def straddle(
    underlying_price: float,
    strike: float | None = None,
    call_premium: float | None = None,
    put_premium: float | None = None,
) -> list[OptionLeg]:
    S = underlying_price
    K = strike or S
    return [
        OptionLeg(K, OptionType.CALL, Side.BUY, call_premium or S * 0.03),
        OptionLeg(K, OptionType.PUT, Side.BUY, put_premium or S * 0.03),
    ]


def strangle(
    underlying_price: float,
    call_strike: float | None = None,
    put_strike: float | None = None,
    call_premium: float | None = None,
    put_premium: float | None = None,
) -> list[OptionLeg]:
    S = underlying_price
    return [
        OptionLeg(call_strike or S * 1.05, OptionType.CALL, Side.BUY, call_premium or S * 0.02),
        OptionLeg(put_strike or S * 0.95, OptionType.PUT, Side.BUY, put_premium or S * 0.02),
    ]


def iron_condor(
    underlying_price: float,
    put_buy_strike: float | None = None,
    put_sell_strike: float | None = None,
    call_sell_strike: float | None = None,
    call_buy_strike: float | None = None,
) -> list[OptionLeg]:
    S = underlying_price
    return [
        OptionLeg(put_buy_strike or S * 0.90, OptionType.PUT, Side.BUY, S * 0.01),
        OptionLeg(put_sell_strike or S * 0.95, OptionType.PUT, Side.SELL, S * 0.02),
        OptionLeg(call_sell_strike or S * 1.05, OptionType.CALL, Side.SELL, S * 0.02),
        OptionLeg(call_buy_strike or S * 1.10, OptionType.CALL, Side.BUY, S * 0.01),
    ]


def butterfly(
    underlying_price: float,
    lower_strike: float | None = None,
    middle_strike: float | None = None,
    upper_strike: float | None = None,
) -> list[OptionLeg]:
    S = underlying_price
    return [
        OptionLeg(lower_strike or S * 0.95, OptionType.CALL, Side.BUY, S * 0.06),
        OptionLeg(middle_strike or S, OptionType.CALL, Side.SELL, S * 0.04, quantity=2),
        OptionLeg(upper_strike or S * 1.05, OptionType.CALL, Side.BUY, S * 0.02),
    ]


def cash_secured_put(
    underlying_price: float,
    strike: float | None = None,
    premium: float | None = None,
) -> list[OptionLeg]:
    S = underlying_price
    return [OptionLeg(strike or S * 0.95, OptionType.PUT, Side.SELL, premium or S * 0.03)]


def covered_call(
    underlying_price: float,
    strike: float | None = None,
    premium: float | None = None,
) -> list[OptionLeg]:
    """Short call legs only; pair with ``template_underlying`` for the shares."""
    S = underlying_price
    return [OptionLeg(strike or S * 1.05, OptionType.CALL, Side.SELL, premium or S * 0.03)]


TEMPLATES: dict[str, tuple[str, Callable[..., list[OptionLeg]]]] = {
    "bull_call_spread": ("Bull Call Spread", bull_call_spread),
    "bear_put_spread": ("Bear Put Spread", bear_put_spread),
    "straddle": ("Straddle", straddle),
    "strangle": ("Strangle", strangle),
    "iron_condor": ("Iron Condor", iron_condor),
    "butterfly": ("Butterfly Spread", butterfly),
    "cash_secured_put": ("Cash-Secured Put", cash_secured_put),
    "covered_call": ("Covered Call", covered_call),
}

# Templates that hold the underlying: every short call contract is covered
_COVERED = {"covered_call"}


def strategy_key(name: str) -> str:
    """'Iron Condor', 'iron-condor' and 'iron_condor' all map to 'iron_condor'."""
    return name.strip().lower().replace(" ", "_").replace("-", "_")


def build_template(name: str, underlying_price: float, **overrides) -> list[OptionLeg]:
    """Build the legs for a named template.

    Raises:
        InvalidInput: Unknown template, unknown override, or bad price.
    """
    entry = TEMPLATES.get(strategy_key(name))
    if entry is None:
        raise InvalidInput(f"Unknown strategy template {name!r}. Available: {sorted(TEMPLATES)}")
    if not isinstance(underlying_price, (int, float)) or underlying_price <= 0:
        raise InvalidInput(f"underlying price must be positive, got {underlying_price!r}")
    _, builder = entry
    try:
        return builder(underlying_price, **overrides)
    except TypeError:
        raise InvalidInput(f"Unsupported override for {name!r}: {sorted(overrides)}")


def template_underlying(
    name: str,
    underlying_price: float,
    legs: Sequence[OptionLeg],
    contract_multiplier: int = DEFAULT_CONTRACT_MULTIPLIER,
) -> UnderlyingPosition | None:
    """Shares bought at ``underlying_price`` to go with a template's legs, if any."""
    if strategy_key(name) not in _COVERED:
        return None
    contracts = sum(
        leg.quantity for leg in legs
        if leg.option_type == OptionType.CALL and leg.side == Side.SELL
    )
    return UnderlyingPosition(shares=contracts * contract_multiplier, entry_price=underlying_price)
