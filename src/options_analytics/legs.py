"""Validate strategy legs and convert them to signed payoff contributors.

Every invariant violation on a leg is collected and reported in a single
InvalidLeg error so a form can flag all bad fields at once.
"""

import logging
import math
from collections.abc import Iterable, Mapping

from .errors import InvalidLeg
from .models import NormalizedLeg, OptionLeg, OptionType, Side
from .settings import DEFAULT_CONTRACT_MULTIPLIER

logger = logging.getLogger(__name__)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_side(value) -> str | None:
    if not isinstance(value, Side):
        return f"side: must be 'buy' or 'sell', got {value!r}"
    return None


def _check_option_type(value) -> str | None:
    if not isinstance(value, OptionType):
        return f"option_type: must be 'call' or 'put', got {value!r}"
    return None


def _check_strike(value) -> str | None:
    if not _is_number(value) or not math.isfinite(value) or value <= 0:
        return f"strike: must be a positive number, got {value!r}"
    return None


def _check_premium(value) -> str | None:
    if not _is_number(value) or not math.isfinite(value) or value < 0:
        return f"premium: must be a non-negative number, got {value!r}"
    return None


def _check_quantity(value) -> str | None:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        return f"quantity: must be a whole number of contracts >= 1, got {value!r}"
    return None


def _check_implied_volatility(value) -> str | None:
    if value is None:
        return None
    if not _is_number(value) or not math.isfinite(value) or value < 0:
        return f"implied_volatility: must be a non-negative number, got {value!r}"
    return None


def _check_time_to_expiry(value) -> str | None:
    if value is None:
        return None
    if not _is_number(value) or not math.isfinite(value) or value < 0:
        return f"time_to_expiry: must be a non-negative number of years, got {value!r}"
    return None


_CHECKS = (
    ("side", _check_side),
    ("option_type", _check_option_type),
    ("strike", _check_strike),
    ("premium", _check_premium),
    ("quantity", _check_quantity),
    ("implied_volatility", _check_implied_volatility),
    ("time_to_expiry", _check_time_to_expiry),
)


def validate_leg(leg: OptionLeg) -> list[str]:
    """Return every invariant violation on ``leg`` (empty when valid)."""
    violations = []
    for name, check in _CHECKS:
        problem = check(getattr(leg, name))
        if problem:
            violations.append(problem)
    return violations


def normalize(
    leg: OptionLeg | NormalizedLeg,
    contract_multiplier: int = DEFAULT_CONTRACT_MULTIPLIER,
) -> NormalizedLeg:
    """Validate a leg and attach its sign and premium cash flow.

    Normalizing an already-normalized leg with the same multiplier returns
    it unchanged.

    Raises:
        InvalidLeg: Listing every violated invariant.
    """
    if isinstance(leg, NormalizedLeg):
        if leg.contract_multiplier == contract_multiplier:
            return leg
        leg = leg.leg

    violations = validate_leg(leg)
    if violations:
        raise InvalidLeg(violations)

    sign = leg.direction
    return NormalizedLeg(
        leg=leg,
        sign=sign,
        contract_multiplier=contract_multiplier,
        premium_cash_flow=-sign * leg.premium * leg.quantity * contract_multiplier,
    )


def normalize_all(
    legs: Iterable[OptionLeg | NormalizedLeg],
    contract_multiplier: int = DEFAULT_CONTRACT_MULTIPLIER,
) -> list[NormalizedLeg]:
    """Normalize a leg list, reporting violations from every leg together."""
    normalized = []
    violations = []
    for i, leg in enumerate(legs, start=1):
        try:
            normalized.append(normalize(leg, contract_multiplier))
        except InvalidLeg as exc:
            violations.extend(f"leg {i}: {v}" for v in exc.violations)
    if violations:
        logger.debug("Rejected strategy with %d leg violations", len(violations))
        raise InvalidLeg(violations)
    return normalized


def net_premium(legs: Iterable[NormalizedLeg]) -> float:
    """Net entry cash flow: negative for a debit, positive for a credit."""
    return sum(leg.premium_cash_flow for leg in legs)


def leg_from_dict(data: Mapping) -> OptionLeg:
    """Build an OptionLeg from a JSON-style mapping.

    Accepts ``action`` or ``side``, and ``type`` or ``option_type``.
    Conversion failures and range violations are reported together.

    Raises:
        InvalidLeg: If any field is missing, unparseable or out of range.
    """
    violations = []
    values = {}

    raw_side = data.get("side", data.get("action"))
    try:
        values["side"] = Side(str(raw_side).lower())
    except ValueError:
        violations.append(f"side: must be 'buy' or 'sell', got {raw_side!r}")

    raw_type = data.get("option_type", data.get("type"))
    try:
        values["option_type"] = OptionType(str(raw_type).lower())
    except ValueError:
        violations.append(f"option_type: must be 'call' or 'put', got {raw_type!r}")

    for name, required in (
        ("strike", True),
        ("premium", False),
        ("implied_volatility", False),
        ("time_to_expiry", False),
    ):
        raw = data.get(name)
        if raw is None:
            if required:
                violations.append(f"{name}: is required")
            elif name == "premium":
                values[name] = 0.0
            else:
                values[name] = None
            continue
        try:
            values[name] = float(raw)
        except (TypeError, ValueError):
            violations.append(f"{name}: must be a number, got {raw!r}")

    raw_qty = data.get("quantity", 1)
    try:
        qty = float(raw_qty)
        if not qty.is_integer():
            raise ValueError(raw_qty)
        values["quantity"] = int(qty)
    except (TypeError, ValueError, OverflowError):
        violations.append(
            f"quantity: must be a whole number of contracts >= 1, got {raw_qty!r}"
        )

    for name, check in _CHECKS:
        if name in values:
            problem = check(values[name])
            if problem:
                violations.append(problem)

    if violations:
        raise InvalidLeg(violations)
    return OptionLeg(**values)
