"""Configuration settings for the options strategy analytics engine."""

from dataclasses import asdict, dataclass

from .models import GridStepPolicy, PopMethod

# Shares of underlying per option contract
DEFAULT_CONTRACT_MULTIPLIER = 100

# Risk-free rate default (annualized)
DEFAULT_RISK_FREE_RATE = 0.05

# Default dividend yield
DEFAULT_DIVIDEND_YIELD = 0.0

# Payoff grid settings
DEFAULT_GRID_RANGE_PCT = 0.40
DEFAULT_GRID_STEP = 1.0
DEFAULT_AUTO_GRID_INTERVALS = 200
MAX_GRID_POINTS = 2000

# API server settings
SERVER_HOST = "127.0.0.1"
SERVER_PORT = 8060
SERVER_DEBUG = False


@dataclass(frozen=True)
class EngineConfig:
    """Engine-wide configuration, passed to StrategyAnalyzer at construction.

    Attributes:
        contract_multiplier: Underlying shares represented by one contract.
        grid_step_policy: AUTO divides the range into ``auto_grid_intervals``;
            FIXED uses ``grid_step``.
        grid_step: Price step for the FIXED policy.
        grid_range_pct: Auto range extends this fraction below the lowest
            strike and above the highest strike.
        auto_grid_intervals: Interval count for the AUTO policy.
        max_grid_points: Upper bound on grid size; exceeding it raises
            GridTooLarge.
        risk_free_rate: Rate used when a call does not inject one.
        fallback_volatility: Volatility used for legs with no implied vol.
            None means a missing vol raises MissingVolatility.
        pop_method: Probability-of-profit method.
        dividend_yield: Continuous dividend yield used by the pricer.
    """

    contract_multiplier: int = DEFAULT_CONTRACT_MULTIPLIER
    grid_step_policy: GridStepPolicy = GridStepPolicy.AUTO
    grid_step: float = DEFAULT_GRID_STEP
    grid_range_pct: float = DEFAULT_GRID_RANGE_PCT
    auto_grid_intervals: int = DEFAULT_AUTO_GRID_INTERVALS
    max_grid_points: int = MAX_GRID_POINTS
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
    fallback_volatility: float | None = None
    pop_method: PopMethod = PopMethod.LOGNORMAL
    dividend_yield: float = DEFAULT_DIVIDEND_YIELD

    def __post_init__(self):
        if self.contract_multiplier <= 0:
            raise ValueError("contract_multiplier must be positive")
        if self.grid_step <= 0:
            raise ValueError("grid_step must be positive")
        if not 0 < self.grid_range_pct <= 1:
            raise ValueError("grid_range_pct must be in (0, 1]")
        if self.auto_grid_intervals < 1:
            raise ValueError("auto_grid_intervals must be at least 1")
        if self.max_grid_points < 2:
            raise ValueError("max_grid_points must be at least 2")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["grid_step_policy"] = self.grid_step_policy.value
        data["pop_method"] = self.pop_method.value
        return data
