"""Strategy analytics API: local HTTP server exposing the engine as JSON.

Presentation collaborators (the web UI, notebooks) post leg lists and get
back payoff curves and risk metrics. Results are chart-library agnostic.

Usage:
    python -m options_analytics.server [--port 8060] [--host 127.0.0.1]
"""

import argparse
import logging
import math

from flask import Flask, jsonify, request
from flask_cors import CORS

from .analyzer import StrategyAnalyzer
from .errors import AnalyticsError, InvalidInput, InvalidLeg
from .legs import leg_from_dict
from .models import (
    Greeks,
    OptionType,
    PayoffPoint,
    StrategyAnalysisResult,
    UnderlyingPosition,
)
from .settings import SERVER_DEBUG, SERVER_HOST, SERVER_PORT, EngineConfig
from .templates import TEMPLATES, build_template, template_underlying
from .validation import validate_strategy

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Initialized in main() or init_app()
_analyzer: StrategyAnalyzer | None = None


def init_app(config: EngineConfig | None = None):
    """Initialize the analyzer backing the API."""
    global _analyzer
    _analyzer = StrategyAnalyzer(config)


@app.errorhandler(AnalyticsError)
def handle_analytics_error(exc: AnalyticsError):
    """Engine errors are client errors: report kind and every violation."""
    logger.warning("Rejected %s request: %s", request.path, exc)
    body = {"error": str(exc), "kind": exc.kind}
    if isinstance(exc, InvalidLeg):
        body["violations"] = exc.violations
    return jsonify(body), 400


def _finite_or_none(value: float) -> float | None:
    return value if math.isfinite(value) else None


def serialize_points(points: list[PayoffPoint]) -> list[dict]:
    return [{"price": p.price, "profit": p.profit} for p in points]


def serialize_result(result: StrategyAnalysisResult) -> dict:
    """Convert a StrategyAnalysisResult to JSON-safe primitives.

    Infinite extremes become null with an explicit ``*_unbounded`` flag,
    since JSON has no infinity.
    """
    return {
        "points": serialize_points(result.points),
        "max_profit": _finite_or_none(result.max_profit),
        "max_profit_unbounded": math.isinf(result.max_profit),
        "max_loss": _finite_or_none(result.max_loss),
        "max_loss_unbounded": math.isinf(result.max_loss),
        "breakeven_points": result.breakeven_points,
        "net_greeks": result.net_greeks.to_dict(),
        "reward_to_risk": result.reward_to_risk,
        "probability_of_profit": result.probability_of_profit,
        "pop_method": result.pop_method.value if result.pop_method else None,
        "pop_low_confidence": result.pop_low_confidence,
        "net_premium": result.net_premium,
        "leg_greeks": [g.to_dict() for g in result.leg_greeks],
        "current_price": result.current_price,
    }


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object")
    return data


def _number(data: dict, key: str, required: bool = False) -> float | None:
    raw = data.get(key)
    if raw is None:
        if required:
            raise InvalidInput(f"Missing '{key}' in request body")
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise InvalidInput(f"'{key}' must be a number, got {raw!r}")


def _years(data: dict) -> float | None:
    """Time to expiry from ``time_to_expiry`` (years) or ``days_to_expiry``."""
    years = _number(data, "time_to_expiry")
    if years is not None:
        return years
    days = _number(data, "days_to_expiry")
    return days / 365.0 if days is not None else None


def _parse_legs(data: dict) -> list:
    raw_legs = data.get("legs")
    if not isinstance(raw_legs, list):
        raise InvalidInput("Missing 'legs' list in request body")
    legs = []
    violations = []
    for i, raw in enumerate(raw_legs, start=1):
        if not isinstance(raw, dict):
            violations.append(f"leg {i}: must be an object")
            continue
        try:
            legs.append(leg_from_dict(raw))
        except InvalidLeg as exc:
            violations.extend(f"leg {i}: {v}" for v in exc.violations)
    if violations:
        raise InvalidLeg(violations)
    return legs


def _price_range(data: dict) -> tuple[float, float] | None:
    raw = data.get("price_range")
    if raw is None:
        return None
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise InvalidInput("'price_range' must be a [low, high] pair")
    return raw[0], raw[1]


def _underlying(data: dict) -> UnderlyingPosition | None:
    """Optional {"shares": 100, "entry_price": 98.5} held alongside the legs."""
    raw = data.get("underlying")
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise InvalidInput("'underlying' must be an object with shares and entry_price")
    shares = raw.get("shares")
    if isinstance(shares, bool) or not isinstance(shares, int):
        raise InvalidInput(f"'underlying.shares' must be an integer, got {shares!r}")
    return UnderlyingPosition(shares=shares, entry_price=_number(raw, "entry_price", required=True))


def _serialize_underlying(underlying: UnderlyingPosition | None) -> dict | None:
    if underlying is None:
        return None
    return {"shares": underlying.shares, "entry_price": underlying.entry_price}


@app.route("/api/status", methods=["GET"])
def status():
    """Return server status and the active engine configuration."""
    if _analyzer is None:
        return jsonify({"error": "Analyzer not initialized"}), 503
    return jsonify({"status": "ok", "config": _analyzer.config.to_dict()})


@app.route("/api/price", methods=["POST"])
def price():
    """Price a single contract.

    Request body:
    {"spot": 100, "strike": 105, "days_to_expiry": 30,
     "volatility": 0.25, "option_type": "call", "risk_free_rate": 0.04}
    """
    if _analyzer is None:
        return jsonify({"error": "Analyzer not initialized"}), 503
    data = _json_body()
    try:
        option_type = OptionType(str(data.get("option_type", "call")).lower())
    except ValueError:
        raise InvalidInput(f"'option_type' must be 'call' or 'put', got {data.get('option_type')!r}")
    years = _years(data)
    if years is None:
        raise InvalidInput("Missing 'time_to_expiry' or 'days_to_expiry' in request body")

    greeks: Greeks = _analyzer.price(
        _number(data, "spot", required=True),
        _number(data, "strike", required=True),
        years,
        _number(data, "volatility"),
        option_type,
        _number(data, "risk_free_rate"),
    )
    return jsonify(greeks.to_dict())


@app.route("/api/analyze", methods=["POST"])
def analyze():
    """Analyze a multi-leg strategy at expiration.

    Request body:
    {
        "current_price": 100,
        "days_to_expiry": 30,
        "volatility": 0.25,
        "legs": [
            {"action": "buy", "type": "call", "strike": 100, "premium": 5, "quantity": 1},
            {"action": "sell", "type": "call", "strike": 110, "premium": 2, "quantity": 1}
        ]
    }
    """
    if _analyzer is None:
        return jsonify({"error": "Analyzer not initialized"}), 503
    data = _json_body()
    legs = _parse_legs(data)
    result = _analyzer.analyze(
        legs,
        _number(data, "current_price", required=True),
        time_to_expiry=_years(data),
        volatility=_number(data, "volatility"),
        risk_free_rate=_number(data, "risk_free_rate"),
        price_range=_price_range(data),
        step=_number(data, "step"),
        underlying=_underlying(data),
    )
    return jsonify(serialize_result(result))


@app.route("/api/curve", methods=["POST"])
def curve():
    """Payoff curve ``days_forward`` days from now (before expiry).

    Same body as /api/analyze plus ``days_forward``.
    """
    if _analyzer is None:
        return jsonify({"error": "Analyzer not initialized"}), 503
    data = _json_body()
    legs = _parse_legs(data)
    days_forward = _number(data, "days_forward") or 0.0
    points = _analyzer.curve_before_expiry(
        legs,
        _number(data, "current_price", required=True),
        days_forward / 365.0,
        time_to_expiry=_years(data),
        volatility=_number(data, "volatility"),
        risk_free_rate=_number(data, "risk_free_rate"),
        price_range=_price_range(data),
        step=_number(data, "step"),
        underlying=_underlying(data),
    )
    return jsonify({"points": serialize_points(points), "days_forward": days_forward})


@app.route("/api/templates", methods=["GET"])
def templates():
    """List available strategy templates."""
    return jsonify({
        "templates": [
            {"name": name, "label": label} for name, (label, _) in TEMPLATES.items()
        ]
    })


@app.route("/api/templates/<name>", methods=["POST"])
def template_analysis(name):
    """Build a template around ``current_price`` and analyze it.

    Optional ``overrides`` object is passed to the template builder.
    """
    if _analyzer is None:
        return jsonify({"error": "Analyzer not initialized"}), 503
    data = _json_body()
    current_price = _number(data, "current_price", required=True)
    overrides = data.get("overrides") or {}
    if not isinstance(overrides, dict):
        raise InvalidInput("'overrides' must be an object")
    legs = build_template(name, current_price, **overrides)
    underlying = template_underlying(
        name, current_price, legs, _analyzer.config.contract_multiplier,
    )
    result = _analyzer.analyze(
        legs,
        current_price,
        time_to_expiry=_years(data),
        volatility=_number(data, "volatility"),
        risk_free_rate=_number(data, "risk_free_rate"),
        underlying=underlying,
    )
    body = serialize_result(result)
    body["underlying"] = _serialize_underlying(underlying)
    body["legs"] = [
        {
            "action": leg.side.value,
            "type": leg.option_type.value,
            "strike": leg.strike,
            "premium": leg.premium,
            "quantity": leg.quantity,
        }
        for leg in legs
    ]
    return jsonify(body)


@app.route("/api/validate/<name>", methods=["POST"])
def validate(name):
    """Check a leg list against the shape of a named strategy.

    Request body: {"legs": [...]}. Shape problems come back as ``errors``
    with a 200 status; only malformed legs or an unknown name are a 400.
    """
    data = _json_body()
    legs = _parse_legs(data)
    return jsonify(validate_strategy(name, legs).to_dict())


def main():
    parser = argparse.ArgumentParser(description="Options strategy analytics HTTP server")
    parser.add_argument("--host", default=SERVER_HOST,
                        help=f"Interface to bind (default: {SERVER_HOST})")
    parser.add_argument("--port", type=int, default=SERVER_PORT,
                        help=f"Port to listen on (default: {SERVER_PORT})")
    parser.add_argument("--debug", action="store_true", default=SERVER_DEBUG,
                        help="Run Flask in debug mode")
    parser.add_argument("--fallback-vol", type=float, default=None,
                        help="Volatility used for legs with no implied vol")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    init_app(EngineConfig(fallback_volatility=args.fallback_vol))

    logger.info("Strategy analytics API starting on %s:%d", args.host, args.port)
    print(f"Strategy analytics API running on http://{args.host}:{args.port}")

    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
