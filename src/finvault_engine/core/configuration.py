"""
Hand-calibrated weights and thresholds for both engines.

None of these values were learned; they are tuning knobs. Hosts override single
values with `dataclasses.replace` or through the environment (see `from_env`).
"""
from dataclasses import dataclass, field

from finvault_engine.core import settings


@dataclass(frozen=True)
class FraudWeights:
    amount_deviation: float = 0.30
    time_anomaly: float = 0.15
    location_anomaly: float = 0.25
    merchant_anomaly: float = 0.20
    frequency_anomaly: float = 0.10


@dataclass(frozen=True)
class FraudTriggers:
    """Per-feature levels above which a reason line is added to the explanation."""
    amount_deviation: float = 2.5
    time_anomaly: float = 0.8
    location_anomaly: float = 0.7
    merchant_anomaly: float = 0.8
    frequency_anomaly: float = 0.8


@dataclass(frozen=True)
class FraudConfig:
    weights: FraudWeights = field(default_factory=FraudWeights)
    triggers: FraudTriggers = field(default_factory=FraudTriggers)
    # Empirical: maps the unbounded z-score term onto the 0-100 display range.
    # Candidate for recalibration.
    score_scale: float = 3.0
    anomaly_threshold: int = 70
    unusual_location_km: float = 5.0
    unknown_location_anomaly: float = 0.5
    velocity_window_hours: float = 24.0
    velocity_cap: int = 20
    velocity_weight: float = 0.7
    recency_cap_hours: float = 168.0
    recency_weight: float = 0.3
    default_hours_since_last: float = 24.0
    max_frequent_locations: int = 10
    profile_complete_after: int = 10
    top_merchants: int = 5


@dataclass(frozen=True)
class BudgetConfig:
    weekly_floor: float = 500.0
    assumed_events_per_week: float = 10.0
    cold_start_confidence_per_event: int = 5
    cold_start_confidence_cap: int = 30
    common_categories: tuple[str, ...] = (
        "Groceries",
        "Transportation",
        "Dining",
        "Entertainment",
        "Shopping",
    )
    min_breakdown_categories: int = 3
    padded_category_share: int = 15
    category_trend_window: int = 5
    weekly_trend_window: int = 6
    min_weeks_for_trend: int = 3
    higher_factor: float = 1.1
    lower_factor: float = 0.9
    warning_factor: float = 1.2
    warning_share: float = 15.0
    rationale_share: float = 10.0
    stable_trend_band: float = 0.05
    savings_rate_rising: float = 0.20
    savings_rate_flat: float = 0.10
    # Sunday first.
    day_of_week_factors: tuple[float, ...] = (1.1, 0.9, 0.8, 0.9, 1.0, 1.3, 1.2)
    month_factors: tuple[float, ...] = (1.2, 0.9, 0.9, 1.0, 1.0, 1.1, 1.3, 1.1, 1.0, 1.0, 1.1, 1.5)
    confidence_event_target: float = 30.0
    confidence_event_points: float = 40.0
    confidence_weeks_target: float = 8.0
    confidence_weeks_points: float = 40.0
    confidence_category_target: float = 5.0
    confidence_category_points: float = 20.0
    high_confidence_after: int = 30


@dataclass(frozen=True)
class EngineConfig:
    history_cap: int = 500
    profile_ttl_seconds: float = 3600.0
    min_profile_samples: int = 5
    max_event_amount: float = 1_000_000_000.0
    fraud_storage_key: str = "finvault.fraud.transactions"
    budget_storage_key: str = "finvault.budget.expenses"
    fraud: FraudConfig = field(default_factory=FraudConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        fraud_defaults = FraudConfig()
        budget_defaults = BudgetConfig()
        defaults = cls()
        return cls(
            history_cap=settings.get_env_int("HISTORY_CAP", defaults.history_cap, min_value=1),
            profile_ttl_seconds=settings.get_env_float(
                "PROFILE_TTL_SECONDS", defaults.profile_ttl_seconds, min_value=0.0
            ),
            min_profile_samples=settings.get_env_int(
                "MIN_PROFILE_SAMPLES", defaults.min_profile_samples, min_value=1
            ),
            max_event_amount=settings.get_env_float(
                "MAX_EVENT_AMOUNT", defaults.max_event_amount, min_value=1.0
            ),
            fraud=FraudConfig(
                score_scale=settings.get_env_float(
                    "FRAUD_SCORE_SCALE", fraud_defaults.score_scale, min_value=0.001
                ),
                anomaly_threshold=settings.get_env_int(
                    "FRAUD_SCORE_THRESHOLD", fraud_defaults.anomaly_threshold, min_value=0
                ),
                unusual_location_km=settings.get_env_float(
                    "UNUSUAL_LOCATION_KM", fraud_defaults.unusual_location_km, min_value=0.001
                ),
                triggers=FraudTriggers(
                    amount_deviation=settings.get_env_float(
                        "AMOUNT_DEVIATION_TRIGGER",
                        fraud_defaults.triggers.amount_deviation,
                        min_value=0.0,
                    ),
                ),
            ),
            budget=BudgetConfig(
                weekly_floor=settings.get_env_float(
                    "BUDGET_WEEKLY_FLOOR", budget_defaults.weekly_floor, min_value=0.0
                ),
                assumed_events_per_week=settings.get_env_float(
                    "BUDGET_EVENTS_PER_WEEK", budget_defaults.assumed_events_per_week, min_value=0.0
                ),
            ),
        )
