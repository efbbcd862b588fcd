"""Black-Scholes pricing engine and Greeks calculations.

Contracts are priced as European options. Early exercise value of
American-style listed options is not captured.
"""

import math

import numpy as np
from scipy.optimize import brentq
from scipy.stats import norm

from .errors import InvalidInput, MissingVolatility
from .models import Greeks, OptionType, intrinsic_value

# Bracket for the implied volatility root search
_IV_LOWER = 1e-6
_IV_UPPER = 5.0


def black_scholes_price(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float,
    option_type: OptionType,
    q: float = 0.0,
) -> float:
    """Calculate Black-Scholes option price.

    Args:
        S: Current spot price of the underlying.
        K: Strike price.
        T: Time to expiration in years.
        r: Risk-free interest rate (annualized).
        sigma: Implied volatility (annualized).
        option_type: CALL or PUT.
        q: Continuous dividend yield.

    Returns:
        Option price.

    Raises:
        InvalidInput: If any input is non-finite or out of domain.
        MissingVolatility: If sigma is None.
    """
    _validate(S, K, T, r, sigma, q)

    if T == 0:
        return float(intrinsic_value(option_type, S, K))

    if sigma == 0:
        return _deterministic(S, K, T, r, option_type, q)[0]

    d1, d2 = _d1_d2(S, K, T, r, sigma, q)

    if option_type == OptionType.CALL:
        price = S * math.exp(-q * T) * norm.cdf(d1) - K * math.exp(-r * T) * norm.cdf(d2)
    else:
        price = K * math.exp(-r * T) * norm.cdf(-d2) - S * math.exp(-q * T) * norm.cdf(-d1)

    return float(price)


def price_option(
    spot: float,
    strike: float,
    time_to_expiry: float,
    volatility: float | None,
    risk_free_rate: float,
    option_type: OptionType,
    dividend_yield: float = 0.0,
) -> Greeks:
    """Calculate option price and all Greeks.

    The supplied volatility is taken as given (typically a market-observed
    implied vol); no solving is done here.

    At expiry (T == 0) the price is intrinsic value, delta is +/-1 when in or
    at the money and 0 otherwise, and every other Greek is 0. With zero
    volatility the option is priced off the deterministic forward.

    Raises:
        InvalidInput: If any input is non-finite or out of domain.
        MissingVolatility: If volatility is None.
    """
    S, K, T, r, sigma, q = spot, strike, time_to_expiry, risk_free_rate, volatility, dividend_yield
    _validate(S, K, T, r, sigma, q)

    if T == 0:
        # Ties at the strike count as in the money
        if option_type == OptionType.CALL:
            delta = 1.0 if S >= K else 0.0
        else:
            delta = -1.0 if S <= K else 0.0
        return Greeks(
            price=float(intrinsic_value(option_type, S, K)),
            delta=delta, gamma=0.0, theta=0.0, vega=0.0, rho=0.0,
            implied_volatility=sigma,
        )

    if sigma == 0:
        price, delta, theta, rho = _deterministic(S, K, T, r, option_type, q)
        return Greeks(
            price=price, delta=delta, gamma=0.0, theta=theta, vega=0.0, rho=rho,
            implied_volatility=0.0,
        )

    d1, d2 = _d1_d2(S, K, T, r, sigma, q)
    exp_qt = math.exp(-q * T)
    exp_rt = math.exp(-r * T)
    pdf_d1 = norm.pdf(d1)

    # Gamma (same for calls and puts)
    gamma = exp_qt * pdf_d1 / (S * sigma * math.sqrt(T))

    # Vega (same for calls and puts), per 1% vol move
    vega = S * exp_qt * pdf_d1 * math.sqrt(T) / 100.0

    if option_type == OptionType.CALL:
        price = S * exp_qt * norm.cdf(d1) - K * exp_rt * norm.cdf(d2)
        delta = exp_qt * norm.cdf(d1)
        theta = (
            -S * exp_qt * pdf_d1 * sigma / (2 * math.sqrt(T))
            + q * S * exp_qt * norm.cdf(d1)
            - r * K * exp_rt * norm.cdf(d2)
        ) / 365.0  # per calendar day
        rho = K * T * exp_rt * norm.cdf(d2) / 100.0  # per 1% rate move
    else:
        price = K * exp_rt * norm.cdf(-d2) - S * exp_qt * norm.cdf(-d1)
        delta = exp_qt * (norm.cdf(d1) - 1)
        theta = (
            -S * exp_qt * pdf_d1 * sigma / (2 * math.sqrt(T))
            - q * S * exp_qt * norm.cdf(-d1)
            + r * K * exp_rt * norm.cdf(-d2)
        ) / 365.0
        rho = -K * T * exp_rt * norm.cdf(-d2) / 100.0

    return Greeks(
        price=float(price),
        delta=float(delta),
        gamma=float(gamma),
        theta=float(theta),
        vega=float(vega),
        rho=float(rho),
        implied_volatility=sigma,
    )


def scenario_greeks(
    spot: float,
    strike: float,
    time_to_expiry: float,
    volatility: float | None,
    risk_free_rate: float,
    option_type: OptionType,
    price_change_pct: float = 0.0,
    vol_change_pct: float = 0.0,
    days_passed: float = 0.0,
    dividend_yield: float = 0.0,
) -> Greeks:
    """Reprice an option under a what-if scenario.

    Args:
        price_change_pct: Relative underlying move, e.g. 0.05 for +5%.
        vol_change_pct: Relative volatility change, e.g. -0.2 for a 20% crush.
        days_passed: Calendar days elapsed; time to expiry floors at zero.
    """
    if volatility is None:
        raise MissingVolatility("Scenario pricing requires a volatility")
    if days_passed < 0:
        raise InvalidInput(f"days_passed must be non-negative, got {days_passed!r}")
    adjusted_spot = spot * (1 + price_change_pct)
    adjusted_vol = volatility * (1 + vol_change_pct)
    adjusted_t = max(0.0, time_to_expiry - days_passed / 365.0)
    return price_option(
        adjusted_spot, strike, adjusted_t, adjusted_vol, risk_free_rate,
        option_type, dividend_yield,
    )


def greeks_sensitivity(
    strike: float,
    time_to_expiry: float,
    volatility: float | None,
    risk_free_rate: float,
    option_type: OptionType,
    price_min: float,
    price_max: float,
    steps: int = 50,
    dividend_yield: float = 0.0,
) -> list[tuple[float, Greeks]]:
    """Calculate Greeks across a range of underlying prices."""
    if steps < 1:
        raise InvalidInput(f"steps must be at least 1, got {steps!r}")
    if not price_min < price_max:
        raise InvalidInput(f"price_min must be below price_max ({price_min} >= {price_max})")
    return [
        (
            float(spot),
            price_option(
                float(spot), strike, time_to_expiry, volatility, risk_free_rate,
                option_type, dividend_yield,
            ),
        )
        for spot in np.linspace(price_min, price_max, steps + 1)
    ]


def implied_volatility(
    market_price: float,
    spot: float,
    strike: float,
    time_to_expiry: float,
    risk_free_rate: float,
    option_type: OptionType,
    dividend_yield: float = 0.0,
) -> float:
    """Invert Black-Scholes for the volatility matching ``market_price``.

    Not used by the strategy analysis itself, which takes implied vols as
    given; provided for collaborators that only have a quoted premium.

    Raises:
        InvalidInput: If the price is outside the no-arbitrage bounds or the
            option has already expired.
    """
    S, K, T, r, q = spot, strike, time_to_expiry, risk_free_rate, dividend_yield
    _validate(S, K, T, r, 0.0, q)
    if T == 0:
        raise InvalidInput("Cannot infer volatility for an expired option")
    if not _is_finite(market_price) or market_price < 0:
        raise InvalidInput(f"market_price must be non-negative, got {market_price!r}")

    lower_bound = black_scholes_price(S, K, T, r, 0.0, option_type, q)
    if option_type == OptionType.CALL:
        upper_bound = S * math.exp(-q * T)
    else:
        upper_bound = K * math.exp(-r * T)

    if math.isclose(market_price, lower_bound, abs_tol=1e-12):
        return 0.0
    if not lower_bound < market_price < upper_bound:
        raise InvalidInput(
            f"market_price {market_price} outside arbitrage bounds "
            f"({lower_bound:.6f}, {upper_bound:.6f})"
        )

    def objective(sigma: float) -> float:
        return black_scholes_price(S, K, T, r, sigma, option_type, q) - market_price

    if objective(_IV_UPPER) < 0:
        raise InvalidInput(f"market_price {market_price} implies volatility above {_IV_UPPER}")
    return float(brentq(objective, _IV_LOWER, _IV_UPPER, xtol=1e-10, maxiter=200))


def _deterministic(
    S: float, K: float, T: float, r: float, option_type: OptionType, q: float
) -> tuple[float, float, float, float]:
    """Price, delta, theta and rho when volatility is zero.

    The underlying grows at the forward rate with certainty, so the option is
    worth its discounted forward intrinsic value.
    """
    pv_spot = S * math.exp(-q * T)
    pv_strike = K * math.exp(-r * T)
    gap = pv_spot - pv_strike

    if option_type == OptionType.CALL:
        if gap < 0:
            return 0.0, 0.0, 0.0, 0.0
        theta = (q * pv_spot - r * pv_strike) / 365.0
        return gap, math.exp(-q * T), theta, K * T * math.exp(-r * T) / 100.0

    if gap > 0:
        return 0.0, 0.0, 0.0, 0.0
    theta = (r * pv_strike - q * pv_spot) / 365.0
    return -gap, -math.exp(-q * T), theta, -K * T * math.exp(-r * T) / 100.0


def _is_finite(value) -> bool:
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def _validate(S, K, T, r, sigma, q) -> None:
    """Reject out-of-domain inputs; nothing is clamped."""
    if sigma is None:
        raise MissingVolatility("No volatility supplied and no fallback configured")
    if not _is_finite(S) or S <= 0:
        raise InvalidInput(f"spot must be a positive finite number, got {S!r}")
    if not _is_finite(K) or K <= 0:
        raise InvalidInput(f"strike must be a positive finite number, got {K!r}")
    if not _is_finite(T) or T < 0:
        raise InvalidInput(f"time to expiry must be a non-negative finite number, got {T!r}")
    if not _is_finite(sigma) or sigma < 0:
        raise InvalidInput(f"volatility must be a non-negative finite number, got {sigma!r}")
    if not _is_finite(r):
        raise InvalidInput(f"risk-free rate must be finite, got {r!r}")
    if not _is_finite(q):
        raise InvalidInput(f"dividend yield must be finite, got {q!r}")


def _d1_d2(
    S: float, K: float, T: float, r: float, sigma: float, q: float
) -> tuple[float, float]:
    """Calculate d1 and d2 for Black-Scholes formula."""
    d1 = (math.log(S / K) + (r - q + 0.5 * sigma**2) * T) / (sigma * math.sqrt(T))
    d2 = d1 - sigma * math.sqrt(T)
    return d1, d2
