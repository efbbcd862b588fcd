"""Tests for the strategy analytics HTTP endpoints."""

import pytest

from options_analytics import server
from options_analytics.server import app, init_app

LONG_CALL = {"action": "buy", "type": "call", "strike": 100, "premium": 5, "quantity": 1}


@pytest.fixture
def client():
    """Create a Flask test client backed by a default analyzer."""
    init_app()
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


class TestStatusEndpoint:
    def test_status_ok(self, client):
        resp = client.get("/api/status")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "ok"
        assert data["config"]["contract_multiplier"] == 100
        assert data["config"]["pop_method"] == "lognormal"

    def test_not_initialized(self, client, monkeypatch):
        monkeypatch.setattr(server, "_analyzer", None)
        resp = client.get("/api/status")
        assert resp.status_code == 503


class TestPriceEndpoint:
    def test_price_call(self, client):
        resp = client.post("/api/price", json={
            "spot": 100, "strike": 100, "time_to_expiry": 1.0,
            "volatility": 0.2, "option_type": "call", "risk_free_rate": 0.05,
        })
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["price"] == pytest.approx(10.4506, abs=1e-4)
        assert data["delta"] == pytest.approx(0.6368, abs=1e-4)

    def test_days_to_expiry(self, client):
        resp = client.post("/api/price", json={
            "spot": 100, "strike": 100, "days_to_expiry": 365,
            "volatility": 0.2, "option_type": "put", "risk_free_rate": 0.05,
        })
        assert resp.get_json()["price"] == pytest.approx(5.5735, abs=1e-4)

    def test_missing_volatility(self, client):
        resp = client.post("/api/price", json={"spot": 100, "strike": 100, "days_to_expiry": 30})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "missing_volatility"

    def test_bad_option_type(self, client):
        resp = client.post("/api/price", json={
            "spot": 100, "strike": 100, "days_to_expiry": 30, "volatility": 0.2,
            "option_type": "straddle",
        })
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_input"

    def test_negative_spot(self, client):
        resp = client.post("/api/price", json={
            "spot": -1, "strike": 100, "days_to_expiry": 30, "volatility": 0.2,
        })
        assert resp.status_code == 400


class TestAnalyzeEndpoint:
    def test_long_call(self, client):
        resp = client.post("/api/analyze", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
            "legs": [LONG_CALL],
        })
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["max_profit"] is None
        assert data["max_profit_unbounded"] is True
        assert data["max_loss"] == pytest.approx(-500)
        assert data["max_loss_unbounded"] is False
        assert data["reward_to_risk"] == "unbounded"
        assert data["breakeven_points"] == pytest.approx([105])
        assert data["pop_method"] == "lognormal"
        assert len(data["leg_greeks"]) == 1
        assert data["points"][0]["price"] < data["points"][-1]["price"]

    def test_invalid_legs_report_every_violation(self, client):
        resp = client.post("/api/analyze", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
            "legs": [
                {"action": "buy", "type": "call", "strike": -5},
                {"action": "hold", "type": "call", "strike": 100, "quantity": 0},
            ],
        })
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["kind"] == "invalid_leg"
        violations = data["violations"]
        assert len(violations) == 3
        assert violations[0].startswith("leg 1: strike")
        assert all(v.startswith("leg 2:") for v in violations[1:])

    def test_empty_legs(self, client):
        resp = client.post("/api/analyze", json={"current_price": 100, "legs": []})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["points"] == []
        assert data["max_profit"] == 0
        assert data["pop_method"] is None

    def test_missing_body(self, client):
        resp = client.post("/api/analyze")
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_input"

    def test_missing_legs(self, client):
        resp = client.post("/api/analyze", json={"current_price": 100})
        assert resp.status_code == 400

    def test_grid_too_large(self, client):
        resp = client.post("/api/analyze", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
            "step": 0.0001, "legs": [LONG_CALL],
        })
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "grid_too_large"

    def test_explicit_price_range(self, client):
        resp = client.post("/api/analyze", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
            "price_range": [90, 110], "step": 5, "legs": [LONG_CALL],
        })
        prices = [p["price"] for p in resp.get_json()["points"]]
        assert prices == [90, 95, 100, 105, 110]

    def test_subnormal_step(self, client):
        resp = client.post("/api/analyze", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
            "step": 1e-320, "legs": [LONG_CALL],
        })
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "grid_too_large"

    def test_range_below_strike_keeps_metrics(self, client):
        resp = client.post("/api/analyze", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
            "price_range": [50, 90], "legs": [LONG_CALL],
        })
        data = resp.get_json()
        assert max(p["price"] for p in data["points"]) <= 90
        assert data["max_profit"] is None
        assert data["max_profit_unbounded"] is True
        assert data["max_loss"] == pytest.approx(-500)
        assert data["reward_to_risk"] == "unbounded"

    def test_underlying_shares(self, client):
        resp = client.post("/api/analyze", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
            "underlying": {"shares": 100, "entry_price": 100},
            "legs": [{"action": "sell", "type": "call", "strike": 105, "premium": 3}],
        })
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["max_profit"] == pytest.approx(800)
        assert data["max_loss"] == pytest.approx(-9700)
        assert data["breakeven_points"] == pytest.approx([97])

    @pytest.mark.parametrize("underlying", [
        [100, 100],
        {"shares": 1.5, "entry_price": 100},
        {"shares": 100},
        {"shares": 100, "entry_price": -1},
    ])
    def test_bad_underlying(self, client, underlying):
        resp = client.post("/api/analyze", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
            "underlying": underlying, "legs": [LONG_CALL],
        })
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_input"


class TestCurveEndpoint:
    def test_curve_today(self, client):
        resp = client.post("/api/curve", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
            "days_forward": 0, "legs": [LONG_CALL],
        })
        assert resp.status_code == 200
        data = resp.get_json()
        by_price = {p["price"]: p["profit"] for p in data["points"]}
        assert by_price[100.0] > -500
        assert data["days_forward"] == 0


class TestTemplatesEndpoint:
    def test_list(self, client):
        resp = client.get("/api/templates")
        assert resp.status_code == 200
        names = [t["name"] for t in resp.get_json()["templates"]]
        assert "iron_condor" in names
        assert "bull_call_spread" in names

    def test_analyze_template(self, client):
        resp = client.post("/api/templates/iron_condor", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
        })
        assert resp.status_code == 200
        data = resp.get_json()
        assert len(data["legs"]) == 4
        assert data["max_profit"] == pytest.approx(200)
        assert data["pop_low_confidence"] is True

    def test_unknown_template(self, client):
        resp = client.post("/api/templates/nope", json={"current_price": 100})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_input"

    def test_covered_call_holds_shares(self, client):
        resp = client.post("/api/templates/covered_call", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
        })
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["underlying"] == {"shares": 100, "entry_price": 100}
        assert data["max_profit"] == pytest.approx(800)
        assert data["breakeven_points"] == pytest.approx([97])

    def test_spread_holds_no_shares(self, client):
        resp = client.post("/api/templates/bull_call_spread", json={
            "current_price": 100, "days_to_expiry": 30, "volatility": 0.25,
        })
        assert resp.get_json()["underlying"] is None


class TestValidateEndpoint:
    def test_valid_spread(self, client):
        resp = client.post("/api/validate/bull_call_spread", json={"legs": [
            LONG_CALL,
            {"action": "sell", "type": "call", "strike": 110, "premium": 2, "quantity": 1},
        ]})
        assert resp.status_code == 200
        assert resp.get_json() == {
            "strategy": "bull_call_spread", "valid": True, "errors": [], "warnings": [],
        }

    def test_shape_errors_are_not_http_errors(self, client):
        resp = client.post("/api/validate/iron-condor", json={"legs": [LONG_CALL]})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["valid"] is False
        assert data["errors"] == ["Iron Condor requires exactly 4 legs"]

    def test_unknown_strategy(self, client):
        resp = client.post("/api/validate/jade_lizard", json={"legs": [LONG_CALL]})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_input"

    def test_malformed_leg(self, client):
        resp = client.post("/api/validate/long_call", json={"legs": [{"action": "buy"}]})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "invalid_leg"
