"""Check that a leg list has the shape of a named strategy.

Shape problems (wrong leg count, strike order, mismatched quantities) are
errors. Setups that are legal but risky or unprofitable are warnings.
Nothing here raises for a bad shape: the result lists both so a form can
show them next to the payoff chart.
"""

import logging
from collections.abc import Callable, Sequence

from .errors import InvalidInput
from .models import NormalizedLeg, OptionLeg, OptionType, Side, StrategyValidation
from .templates import strategy_key

logger = logging.getLogger(__name__)


def _unwrap(legs: Sequence[OptionLeg | NormalizedLeg]) -> list[OptionLeg]:
    return [leg.leg if isinstance(leg, NormalizedLeg) else leg for leg in legs]


def _pick(legs, option_type=None, side=None) -> list[OptionLeg]:
    return [
        leg for leg in legs
        if (option_type is None or leg.option_type == option_type)
        and (side is None or leg.side == side)
    ]


def _check_expiries(legs: list[OptionLeg], result: StrategyValidation) -> None:
    expiries = {leg.time_to_expiry for leg in legs if leg.time_to_expiry is not None}
    if len(expiries) > 1:
        result.errors.append("All legs must have the same expiration")


def _vertical(option_type: OptionType, buy_lower: bool, credit: bool, label: str):
    """Two legs of one type: one bought, one sold at a different strike."""
    kind = option_type.value

    def check(legs: list[OptionLeg], result: StrategyValidation) -> None:
        if len(legs) != 2:
            result.errors.append(f"{label} requires exactly 2 legs")
            return
        buys, sells = _pick(legs, side=Side.BUY), _pick(legs, side=Side.SELL)
        if len(buys) != 1 or len(sells) != 1:
            result.errors.append("Must have one buy leg and one sell leg")
            return
        buy, sell = buys[0], sells[0]

        if buy.option_type != option_type or sell.option_type != option_type:
            result.errors.append(f"Both legs must be {kind} options")
        if buy_lower and buy.strike >= sell.strike:
            result.errors.append(f"Buy {kind} strike must be lower than sell {kind} strike")
        if not buy_lower and buy.strike <= sell.strike:
            result.errors.append(f"Buy {kind} strike must be higher than sell {kind} strike")
        if buy.quantity != sell.quantity:
            result.errors.append("Both legs must have the same quantity")

        net_debit = buy.premium - sell.premium
        if credit:
            if net_debit >= 0:
                result.warnings.append("This spread should generate a net credit")
        elif abs(sell.strike - buy.strike) - net_debit <= 0:
            result.warnings.append("This spread has no profit potential at current prices")

    return check


def _long_pair(same_strike: bool, label: str):
    """One bought call and one bought put."""

    def check(legs: list[OptionLeg], result: StrategyValidation) -> None:
        if len(legs) != 2:
            result.errors.append(f"{label} requires exactly 2 legs")
            return
        calls, puts = _pick(legs, OptionType.CALL), _pick(legs, OptionType.PUT)
        if len(calls) != 1 or len(puts) != 1:
            result.errors.append("Must have one call and one put")
            return
        call, put = calls[0], puts[0]

        if call.side != Side.BUY or put.side != Side.BUY:
            result.errors.append(f"Both legs must be buys for a long {label.lower()}")
        if same_strike:
            if call.strike != put.strike:
                result.errors.append("Call and put must have the same strike price for a straddle")
        elif call.strike == put.strike:
            result.warnings.append("Call and put have the same strike, this is a straddle, not a strangle")
        elif call.strike < put.strike:
            result.errors.append("Call strike must be higher than put strike for a strangle")
        if call.quantity != put.quantity:
            result.errors.append("Both legs must have the same quantity")

    return check


def _iron_condor(legs: list[OptionLeg], result: StrategyValidation) -> None:
    if len(legs) != 4:
        result.errors.append("Iron Condor requires exactly 4 legs")
        return
    puts = sorted(_pick(legs, OptionType.PUT), key=lambda leg: leg.strike)
    calls = sorted(_pick(legs, OptionType.CALL), key=lambda leg: leg.strike)
    if len(puts) != 2 or len(calls) != 2:
        result.errors.append("Must have 2 puts and 2 calls")
        return

    if puts[0].side != Side.BUY or puts[1].side != Side.SELL:
        result.errors.append("Lower put should be bought, higher put should be sold")
    if calls[0].side != Side.SELL or calls[1].side != Side.BUY:
        result.errors.append("Lower call should be sold, higher call should be bought")
    if puts[1].strike >= calls[0].strike:
        result.errors.append("Put spread strikes should be below call spread strikes")
    if len({leg.quantity for leg in legs}) > 1:
        result.errors.append("All legs must have the same quantity")

    net_credit = sum(
        (leg.premium if leg.side == Side.SELL else -leg.premium) * leg.quantity
        for leg in legs
    )
    if net_credit <= 0:
        result.warnings.append("Iron Condor should be a net credit strategy")


def _butterfly(legs: list[OptionLeg], result: StrategyValidation) -> None:
    if not 3 <= len(legs) <= 4:
        result.errors.append("Butterfly Spread requires 3 or 4 legs")
        return
    if len({leg.option_type for leg in legs}) > 1:
        result.errors.append("All legs must be the same type (all calls or all puts)")
    strikes = sorted({leg.strike for leg in legs})
    if len(strikes) != 3:
        result.errors.append("Butterfly requires exactly 3 different strike prices")
        return

    low, middle, high = strikes
    wings = [leg for leg in legs if leg.strike in (low, high)]
    body = [leg for leg in legs if leg.strike == middle]
    if any(leg.side != Side.BUY for leg in wings) or any(leg.side != Side.SELL for leg in body):
        result.errors.append("Outer strikes should be bought, the middle strike sold")
    bought = sum(leg.quantity for leg in wings)
    sold = sum(leg.quantity for leg in body)
    if bought != sold:
        result.errors.append("Middle strike quantity must equal the combined wing quantity")


def _single(option_type: OptionType, side: Side, label: str, warning: str | None = None):
    def check(legs: list[OptionLeg], result: StrategyValidation) -> None:
        if len(legs) != 1:
            result.errors.append("Single-leg strategy requires exactly 1 contract")
            return
        leg = legs[0]
        if leg.option_type != option_type or leg.side != side:
            result.errors.append(f"{label} requires a {side.value} {option_type.value}")
        if warning:
            result.warnings.append(warning)

    return check


_VALIDATORS: dict[str, Callable[[list[OptionLeg], StrategyValidation], None]] = {
    "bull_call_spread": _vertical(OptionType.CALL, buy_lower=True, credit=False, label="Bull Call Spread"),
    "bear_put_spread": _vertical(OptionType.PUT, buy_lower=False, credit=False, label="Bear Put Spread"),
    "bear_call_spread": _vertical(OptionType.CALL, buy_lower=False, credit=True, label="Bear Call Spread"),
    "straddle": _long_pair(same_strike=True, label="Straddle"),
    "strangle": _long_pair(same_strike=False, label="Strangle"),
    "iron_condor": _iron_condor,
    "butterfly": _butterfly,
    "long_call": _single(OptionType.CALL, Side.BUY, "Long Call"),
    "long_put": _single(OptionType.PUT, Side.BUY, "Long Put"),
    "cash_secured_put": _single(OptionType.PUT, Side.SELL, "Cash-Secured Put"),
    "covered_call": _single(OptionType.CALL, Side.SELL, "Covered Call"),
    "naked_call": _single(
        OptionType.CALL, Side.SELL, "Naked Call",
        warning="Naked call selling has unlimited risk",
    ),
}

# Names the strategy pickers also use
_ALIASES = {
    "long_straddle": "straddle",
    "long_strangle": "strangle",
    "butterfly_spread": "butterfly",
    "sell_call": "naked_call",
    "buy_put": "long_put",
}

SUPPORTED_STRATEGIES = sorted(_VALIDATORS)


def validate_strategy(
    name: str,
    legs: Sequence[OptionLeg | NormalizedLeg],
) -> StrategyValidation:
    """Check ``legs`` against the shape of the named strategy.

    Raises:
        InvalidInput: If the strategy name is not known.
    """
    key = strategy_key(name)
    key = _ALIASES.get(key, key)
    check = _VALIDATORS.get(key)
    if check is None:
        raise InvalidInput(f"Unknown strategy {name!r}. Available: {SUPPORTED_STRATEGIES}")

    result = StrategyValidation(strategy=key)
    plain = _unwrap(legs)
    if not plain:
        result.errors.append("No legs selected")
        return result

    check(plain, result)
    _check_expiries(plain, result)
    logger.debug(
        "Validated %s: %d errors, %d warnings", key, len(result.errors), len(result.warnings),
    )
    return result
