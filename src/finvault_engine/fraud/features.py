from dataclasses import dataclass
from datetime import timedelta

from finvault_engine.core.configuration import FraudConfig
from finvault_engine.domain.geo import haversine_km
from finvault_engine.domain.stats import clamp, sunday_first_weekday
from finvault_engine.models import FraudSubScores, Transaction

from .profile import FraudProfile


@dataclass(frozen=True)
class FraudFeatures:
    amount_deviation: float
    time_anomaly: float
    location_anomaly: float
    merchant_anomaly: float
    frequency_anomaly: float

    def as_sub_scores(self) -> FraudSubScores:
        return FraudSubScores(
            amount_deviation=self.amount_deviation,
            location_anomaly=self.location_anomaly,
            time_anomaly=self.time_anomaly,
            merchant_anomaly=self.merchant_anomaly,
            frequency_anomaly=self.frequency_anomaly,
        )


class FraudFeatureExtractor:
    def __init__(self, config: FraudConfig | None = None):
        self.config = config or FraudConfig()

    def extract(self, transaction: Transaction, profile: FraudProfile) -> FraudFeatures:
        return FraudFeatures(
            amount_deviation=self.amount_deviation(transaction, profile),
            time_anomaly=self.time_anomaly(transaction, profile),
            location_anomaly=self.location_anomaly(transaction, profile),
            merchant_anomaly=self.merchant_anomaly(transaction, profile),
            frequency_anomaly=self.frequency_anomaly(transaction, profile),
        )

    def amount_deviation(self, transaction: Transaction, profile: FraudProfile) -> float:
        """Unclamped z-score of the amount; 0 when the history has no spread."""
        if profile.stdev_amount <= 0:
            return 0.0
        return abs(transaction.amount - profile.average_amount) / profile.stdev_amount

    def time_anomaly(self, transaction: Transaction, profile: FraudProfile) -> float:
        n = max(1, profile.sample_count)
        ts = transaction.timestamp
        hour_ratio = profile.hour_histogram[ts.hour] / n
        day_ratio = profile.day_histogram[sunday_first_weekday(ts)] / n
        return 1 - hour_ratio * day_ratio

    def location_anomaly(self, transaction: Transaction, profile: FraudProfile) -> float:
        if transaction.location is None:
            return 0.0
        if not profile.frequent_locations:
            return self.config.unknown_location_anomaly

        here = transaction.location
        nearest = min(
            haversine_km(here.latitude, here.longitude, loc.latitude, loc.longitude)
            for loc in profile.frequent_locations
        )
        return min(1.0, nearest / self.config.unusual_location_km)

    def merchant_anomaly(self, transaction: Transaction, profile: FraudProfile) -> float:
        count = profile.merchant_counts.get(transaction.merchant_name, 0)
        return 1 - count / max(1, profile.sample_count)

    def frequency_anomaly(self, transaction: Transaction, profile: FraudProfile) -> float:
        cfg = self.config
        ts = transaction.timestamp

        window_start = ts - timedelta(hours=cfg.velocity_window_hours)
        recent = sum(1 for seen in profile.timestamps if window_start <= seen <= ts)
        velocity = min(1.0, recent / cfg.velocity_cap)

        if profile.last_timestamp is None:
            hours_since_last = cfg.default_hours_since_last
        else:
            hours_since_last = (ts - profile.last_timestamp).total_seconds() / 3600
        # Backdated events give negative hours; clamp so the term stays in [0, 1].
        recency = clamp(hours_since_last, 0.0, cfg.recency_cap_hours) / cfg.recency_cap_hours

        return cfg.velocity_weight * velocity + cfg.recency_weight * (1 - recency)
