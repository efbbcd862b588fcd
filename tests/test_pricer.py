"""Tests for the Black-Scholes pricer and Greeks."""

import math

import pytest

from options_analytics.errors import InvalidInput, MissingVolatility
from options_analytics.models import OptionType, intrinsic_value
from options_analytics.pricer import (
    black_scholes_price,
    greeks_sensitivity,
    implied_volatility,
    price_option,
    scenario_greeks,
)


class TestKnownValues:
    """Textbook case: S=K=100, T=1, r=5%, sigma=20%."""

    def test_call_price(self):
        g = price_option(100, 100, 1.0, 0.2, 0.05, OptionType.CALL)
        assert g.price == pytest.approx(10.4506, abs=1e-4)

    def test_put_price(self):
        g = price_option(100, 100, 1.0, 0.2, 0.05, OptionType.PUT)
        assert g.price == pytest.approx(5.5735, abs=1e-4)

    def test_call_greeks(self):
        g = price_option(100, 100, 1.0, 0.2, 0.05, OptionType.CALL)
        assert g.delta == pytest.approx(0.6368, abs=1e-4)
        assert g.gamma == pytest.approx(0.018762, abs=1e-5)
        # Vega per 1 vol point
        assert g.vega == pytest.approx(0.37524, abs=1e-4)
        # Theta per calendar day
        assert g.theta == pytest.approx(-6.4140 / 365, abs=1e-4)
        assert g.rho == pytest.approx(0.53232, abs=1e-4)

    def test_implied_vol_echoed(self):
        g = price_option(100, 100, 1.0, 0.2, 0.05, OptionType.CALL)
        assert g.implied_volatility == 0.2

    def test_price_matches_price_only_function(self):
        g = price_option(100, 95, 0.5, 0.3, 0.02, OptionType.PUT)
        assert g.price == pytest.approx(black_scholes_price(100, 95, 0.5, 0.02, 0.3, OptionType.PUT))


class TestProperties:
    def test_deterministic(self):
        a = price_option(123.4, 120, 0.37, 0.41, 0.031, OptionType.CALL)
        b = price_option(123.4, 120, 0.37, 0.41, 0.031, OptionType.CALL)
        assert a == b

    @pytest.mark.parametrize("spot,strike,T,vol,rate", [
        (100, 105, 0.5, 0.2, 0.05),
        (50, 40, 0.1, 0.6, 0.0),
        (250, 300, 2.0, 0.35, -0.01),
        (100, 100, 0.01, 0.15, 0.03),
    ])
    def test_put_call_parity(self, spot, strike, T, vol, rate):
        call = price_option(spot, strike, T, vol, rate, OptionType.CALL).price
        put = price_option(spot, strike, T, vol, rate, OptionType.PUT).price
        expected = spot - strike * math.exp(-rate * T)
        assert call - put == pytest.approx(expected, rel=1e-6, abs=1e-9)

    @pytest.mark.parametrize("spot", [10, 80, 100, 120, 1000])
    @pytest.mark.parametrize("vol", [0.0, 0.05, 0.3, 1.5])
    @pytest.mark.parametrize("T", [0.0, 0.02, 1.0])
    def test_delta_bounds(self, spot, vol, T):
        call = price_option(spot, 100, T, vol, 0.05, OptionType.CALL)
        put = price_option(spot, 100, T, vol, 0.05, OptionType.PUT)
        assert 0.0 <= call.delta <= 1.0
        assert -1.0 <= put.delta <= 0.0

    def test_long_gamma_and_vega_non_negative(self):
        for option_type in OptionType:
            g = price_option(90, 100, 0.25, 0.3, 0.05, option_type)
            assert g.gamma >= 0
            assert g.vega >= 0

    def test_negative_rate_allowed(self):
        g = price_option(100, 100, 1.0, 0.2, -0.02, OptionType.CALL)
        assert g.price > 0


class TestZeroTime:
    def test_itm_call(self):
        g = price_option(110, 100, 0.0, 0.25, 0.05, OptionType.CALL)
        assert g.price == 10
        assert g.delta == 1
        assert g.gamma == 0
        assert g.theta == 0
        assert g.vega == 0
        assert g.rho == 0

    def test_otm_put(self):
        g = price_option(110, 100, 0.0, 0.25, 0.05, OptionType.PUT)
        assert g.price == 0
        assert g.delta == 0

    def test_itm_put(self):
        g = price_option(90, 100, 0.0, 0.25, 0.05, OptionType.PUT)
        assert g.price == 10
        assert g.delta == -1

    def test_at_the_money_ties_toward_itm(self):
        call = price_option(100, 100, 0.0, 0.25, 0.05, OptionType.CALL)
        put = price_option(100, 100, 0.0, 0.25, 0.05, OptionType.PUT)
        assert call.price == 0
        assert call.delta == 1
        assert put.delta == -1

    @pytest.mark.parametrize("option_type", [OptionType.CALL, OptionType.PUT])
    @pytest.mark.parametrize("spot", [80.0, 99.5, 100.0, 120.0])
    def test_expired_price_is_intrinsic(self, option_type, spot):
        expected = float(intrinsic_value(option_type, spot, 100.0))
        assert black_scholes_price(spot, 100.0, 0.0, 0.05, 0.25, option_type) == expected
        assert price_option(spot, 100.0, 0.0, 0.25, 0.05, option_type).price == expected


class TestZeroVolatility:
    def test_call_is_discounted_forward_intrinsic(self):
        g = price_option(100, 90, 1.0, 0.0, 0.05, OptionType.CALL)
        assert g.price == pytest.approx(100 - 90 * math.exp(-0.05))
        assert g.delta == 1
        assert g.gamma == 0
        assert g.vega == 0

    def test_otm_call_worthless(self):
        g = price_option(100, 110, 1.0, 0.0, 0.0, OptionType.CALL)
        assert g.price == 0
        assert g.delta == 0

    def test_put_parity_holds(self):
        call = price_option(100, 103, 0.5, 0.0, 0.04, OptionType.CALL)
        put = price_option(100, 103, 0.5, 0.0, 0.04, OptionType.PUT)
        assert call.price - put.price == pytest.approx(100 - 103 * math.exp(-0.02))
        assert put.delta == -1


class TestInvalidInputs:
    @pytest.mark.parametrize("kwargs", [
        {"spot": -1},
        {"spot": 0},
        {"spot": float("nan")},
        {"strike": 0},
        {"strike": float("inf")},
        {"volatility": -0.1},
        {"volatility": float("inf")},
        {"time_to_expiry": -0.5},
        {"risk_free_rate": float("nan")},
    ])
    def test_rejected(self, kwargs):
        args = {
            "spot": 100, "strike": 100, "time_to_expiry": 0.5,
            "volatility": 0.2, "risk_free_rate": 0.05,
            "option_type": OptionType.CALL,
        }
        args.update(kwargs)
        with pytest.raises(InvalidInput):
            price_option(**args)

    def test_missing_volatility(self):
        with pytest.raises(MissingVolatility):
            price_option(100, 100, 0.5, None, 0.05, OptionType.CALL)


class TestImpliedVolatility:
    def test_recovers_input_vol(self):
        market = black_scholes_price(100, 110, 0.75, 0.03, 0.35, OptionType.CALL)
        iv = implied_volatility(market, 100, 110, 0.75, 0.03, OptionType.CALL)
        assert iv == pytest.approx(0.35, abs=1e-6)

    def test_price_above_upper_bound(self):
        with pytest.raises(InvalidInput, match="arbitrage"):
            implied_volatility(150, 100, 100, 0.5, 0.05, OptionType.CALL)

    def test_expired_option(self):
        with pytest.raises(InvalidInput):
            implied_volatility(5, 100, 100, 0.0, 0.05, OptionType.CALL)


class TestScenarios:
    def test_price_shift_matches_direct_pricing(self):
        shifted = scenario_greeks(100, 100, 0.5, 0.2, 0.05, OptionType.CALL, price_change_pct=0.1)
        direct = price_option(110, 100, 0.5, 0.2, 0.05, OptionType.CALL)
        assert shifted.price == pytest.approx(direct.price)

    def test_days_past_expiry_gives_intrinsic(self):
        g = scenario_greeks(105, 100, 10 / 365, 0.3, 0.05, OptionType.CALL, days_passed=30)
        assert g.price == pytest.approx(5.0)
        assert g.gamma == 0

    def test_vol_crush_lowers_price(self):
        base = price_option(100, 100, 0.25, 0.4, 0.05, OptionType.PUT)
        crushed = scenario_greeks(100, 100, 0.25, 0.4, 0.05, OptionType.PUT, vol_change_pct=-0.5)
        assert crushed.price < base.price
        assert crushed.implied_volatility == pytest.approx(0.2)


class TestSensitivity:
    def test_grid_shape(self):
        rows = greeks_sensitivity(100, 0.5, 0.25, 0.05, OptionType.CALL, 80, 120, steps=8)
        assert len(rows) == 9
        assert rows[0][0] == pytest.approx(80)
        assert rows[-1][0] == pytest.approx(120)

    def test_call_delta_increases_with_spot(self):
        rows = greeks_sensitivity(100, 0.5, 0.25, 0.05, OptionType.CALL, 60, 140, steps=20)
        deltas = [g.delta for _, g in rows]
        assert deltas == sorted(deltas)

    def test_bad_range(self):
        with pytest.raises(InvalidInput):
            greeks_sensitivity(100, 0.5, 0.25, 0.05, OptionType.CALL, 120, 80)
