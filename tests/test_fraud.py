from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from finvault_engine.core.configuration import FraudConfig
from finvault_engine.engine.event_store import EventStore
from finvault_engine.engine.pipeline import ScoringPipeline
from finvault_engine.fraud.features import FraudFeatureExtractor, FraudFeatures
from finvault_engine.fraud.profile import FraudProfileStrategy
from finvault_engine.fraud.scorer import (
    ANOMALY_PREFIX,
    FALLBACK_REASON,
    NORMAL_EXPLANATION,
    FraudDetector,
    scale_score,
    weighted_score,
)
from finvault_engine.models import GeoPoint, Transaction
from finvault_engine.storage.memory import InMemoryStorage

BASE = datetime(2026, 3, 2, 14, 0)
HOME = GeoPoint(latitude=52.5200, longitude=13.4000)


def make_tx(
    amount: float = 50.0,
    at: datetime = BASE,
    merchant: str = "Corner Cafe",
    location: GeoPoint | None = None,
) -> Transaction:
    return Transaction(amount=amount, timestamp=at, merchant_name=merchant, category="dining", location=location)


def features(**overrides: float) -> FraudFeatures:
    values = dict(
        amount_deviation=0.0,
        time_anomaly=0.0,
        location_anomaly=0.0,
        merchant_anomaly=0.0,
        frequency_anomaly=0.0,
    )
    values.update(overrides)
    return FraudFeatures(**values)


class FixedExtractor(FraudFeatureExtractor):
    def __init__(self, fixed: FraudFeatures):
        super().__init__()
        self.fixed = fixed

    def extract(self, transaction, profile):
        return self.fixed


def make_detector(config: FraudConfig | None = None, extractor: FraudFeatureExtractor | None = None) -> FraudDetector:
    store = EventStore(InMemoryStorage(), "fraud", Transaction, background_writes=False)
    return FraudDetector(ScoringPipeline(store, FraudProfileStrategy()), config=config, extractor=extractor)


@pytest.fixture
def detector() -> FraudDetector:
    return make_detector()


def test_outlier_after_steady_history_is_flagged(detector: FraudDetector) -> None:
    # Same hour and merchant every day; amounts vary by a few cents only.
    history = [
        make_tx(amount=49.5 if i % 2 else 50.5, at=BASE + timedelta(days=i))
        for i in range(10)
    ]
    detector.add_transactions(history)

    suspicious = make_tx(
        amount=500.0,
        at=datetime(2026, 3, 12, 3, 0),
        merchant="Unknown Electronics",
    )
    result = detector.detect(suspicious)

    assert result.fraud_score > 70
    assert result.is_anomaly
    explanation = result.explanation.lower()
    assert "amount" in explanation
    assert "merchant" in explanation
    assert result.sub_scores.merchant_anomaly == 1.0
    assert result.sub_scores.time_anomaly == 1.0


def test_identical_amounts_give_no_amount_deviation(detector: FraudDetector) -> None:
    detector.add_transactions([make_tx(amount=50.0, at=BASE + timedelta(days=i)) for i in range(10)])

    result = detector.detect(make_tx(amount=500.0, at=BASE + timedelta(days=10)))

    assert result.sub_scores.amount_deviation == 0.0


def test_detect_does_not_record_transaction(detector: FraudDetector) -> None:
    detector.detect(make_tx())
    assert detector.pipeline.events() == []


def test_amount_deviation_scored_on_short_history(detector: FraudDetector) -> None:
    detector.add_transactions(
        [make_tx(amount=a, at=BASE + timedelta(days=i)) for i, a in enumerate([10, 20, 30, 20])]
    )

    result = detector.detect(make_tx(amount=1000.0, at=BASE + timedelta(days=4)))

    # mean 20, population stdev sqrt(50)
    assert result.sub_scores.amount_deviation == pytest.approx(980 / 50**0.5)
    assert result.fraud_score == 100
    assert result.is_anomaly


def test_score_boundary_is_exclusive() -> None:
    at_threshold = make_detector(extractor=FixedExtractor(features(amount_deviation=7.0)))
    above_threshold = make_detector(extractor=FixedExtractor(features(amount_deviation=7.1)))

    seventy = at_threshold.detect(make_tx())
    seventy_one = above_threshold.detect(make_tx())

    assert seventy.fraud_score == 70
    assert not seventy.is_anomaly
    assert seventy.explanation == NORMAL_EXPLANATION
    assert seventy_one.fraud_score == 71
    assert seventy_one.is_anomaly


def test_threshold_is_configurable() -> None:
    config = FraudConfig(anomaly_threshold=50)
    detector = make_detector(config=config, extractor=FixedExtractor(features(amount_deviation=7.0)))
    assert detector.detect(make_tx()).is_anomaly


@pytest.mark.parametrize("deviation", [0.0, 0.5, 3.0, 10.0, 1e9])
def test_fraud_score_stays_in_range(deviation: float) -> None:
    f = features(
        amount_deviation=deviation,
        time_anomaly=1.0,
        location_anomaly=1.0,
        merchant_anomaly=1.0,
        frequency_anomaly=1.0,
    )
    score = scale_score(weighted_score(f, FraudConfig().weights), FraudConfig().score_scale)
    assert 0 <= score <= 100


def test_all_zero_features_score_zero() -> None:
    assert scale_score(weighted_score(features(), FraudConfig().weights), 3.0) == 0


def test_fallback_reason_when_no_feature_triggers() -> None:
    config = FraudConfig(anomaly_threshold=0)
    detector = make_detector(config=config, extractor=FixedExtractor(features(frequency_anomaly=0.5)))

    result = detector.detect(make_tx())

    assert result.is_anomaly
    assert result.reasons == [FALLBACK_REASON]
    assert FALLBACK_REASON in result.explanation


def test_reasons_follow_feature_order() -> None:
    config = FraudConfig(anomaly_threshold=0)
    extractor = FixedExtractor(
        features(
            amount_deviation=3.0,
            time_anomaly=0.9,
            location_anomaly=0.8,
            merchant_anomaly=0.9,
            frequency_anomaly=0.9,
        )
    )
    result = make_detector(config=config, extractor=extractor).detect(make_tx(amount=80.0))

    assert len(result.reasons) == 5
    assert result.reasons[0].startswith("Unusual amount (80.00)")
    assert "location" in result.reasons[2]
    assert "merchant" in result.reasons[3]
    assert result.explanation == ANOMALY_PREFIX + ", ".join(result.reasons)


def test_time_anomaly_uses_hour_and_weekday() -> None:
    weekly = [make_tx(at=BASE + timedelta(weeks=i)) for i in range(6)]
    profile = FraudProfileStrategy().build(weekly)
    extractor = FraudFeatureExtractor()

    usual = extractor.time_anomaly(make_tx(at=BASE + timedelta(weeks=6)), profile)
    odd_hour = extractor.time_anomaly(make_tx(at=BASE + timedelta(weeks=6, hours=-11)), profile)

    assert usual == pytest.approx(0.0)
    assert odd_hour == pytest.approx(1.0)


def test_location_anomaly_cases() -> None:
    extractor = FraudFeatureExtractor()
    with_home = FraudProfileStrategy().build([make_tx(location=HOME) for _ in range(5)])
    without_locations = FraudProfileStrategy().build([make_tx() for _ in range(5)])

    nearby = GeoPoint(latitude=52.5200, longitude=13.4300)  # roughly 2 km east
    far_away = GeoPoint(latitude=48.8566, longitude=2.3522)

    assert extractor.location_anomaly(make_tx(location=HOME), with_home) == pytest.approx(0.0)
    assert 0.3 < extractor.location_anomaly(make_tx(location=nearby), with_home) < 0.5
    assert extractor.location_anomaly(make_tx(location=far_away), with_home) == 1.0
    assert extractor.location_anomaly(make_tx(location=far_away), without_locations) == 0.5
    assert extractor.location_anomaly(make_tx(location=None), with_home) == 0.0


def test_location_threshold_is_configurable() -> None:
    extractor = FraudFeatureExtractor(FraudConfig(unusual_location_km=50.0))
    profile = FraudProfileStrategy().build([make_tx(location=HOME) for _ in range(5)])
    nearby = GeoPoint(latitude=52.5200, longitude=13.4300)

    assert extractor.location_anomaly(make_tx(location=nearby), profile) < 0.1


def test_merchant_anomaly_is_share_of_history() -> None:
    events = [make_tx(merchant="A") for _ in range(4)] + [make_tx(merchant="B") for _ in range(6)]
    profile = FraudProfileStrategy().build(events)
    extractor = FraudFeatureExtractor()

    assert extractor.merchant_anomaly(make_tx(merchant="A"), profile) == pytest.approx(0.6)
    assert extractor.merchant_anomaly(make_tx(merchant="C"), profile) == 1.0


def test_frequency_anomaly_for_burst() -> None:
    burst = [make_tx(at=BASE + timedelta(minutes=i)) for i in range(20)]
    profile = FraudProfileStrategy().build(burst)

    value = FraudFeatureExtractor().frequency_anomaly(make_tx(at=BASE + timedelta(minutes=30)), profile)

    assert value > 0.99


def test_frequency_anomaly_without_history() -> None:
    profile = FraudProfileStrategy().build([])
    value = FraudFeatureExtractor().frequency_anomaly(make_tx(), profile)
    assert value == pytest.approx(0.3 * (1 - 24 / 168))


def test_frequency_anomaly_after_quiet_week() -> None:
    profile = FraudProfileStrategy().build([make_tx(at=BASE)])
    value = FraudFeatureExtractor().frequency_anomaly(make_tx(at=BASE + timedelta(days=10)), profile)
    assert value == pytest.approx(0.0)


def test_frequency_anomaly_for_backdated_event() -> None:
    profile = FraudProfileStrategy().build([make_tx(at=BASE)])
    value = FraudFeatureExtractor().frequency_anomaly(make_tx(at=BASE - timedelta(hours=2)), profile)
    # Negative hours since the latest event count as zero, not as extra recency.
    assert value == pytest.approx(0.3)


def test_weights_are_overridable() -> None:
    config = FraudConfig()
    heavier = replace(config, weights=replace(config.weights, merchant_anomaly=0.9))
    f = features(merchant_anomaly=1.0)
    assert weighted_score(f, heavier.weights) > weighted_score(f, config.weights)


def test_report_fraud_and_statistics(detector: FraudDetector) -> None:
    merchants = ["A"] * 5 + ["B"] * 3 + ["C", "D", "E", "F"]
    detector.add_transactions(
        [make_tx(merchant=m, at=BASE + timedelta(hours=i)) for i, m in enumerate(merchants)]
    )
    detector.report_fraud("tx-42")

    stats = detector.statistics()

    assert stats.transactions_analyzed == 12
    assert stats.user_profile_complete
    assert [m.merchant for m in stats.top_merchants] == ["A", "B", "C", "D", "E"]
    assert stats.top_merchants[0].count == 5
    assert stats.reported_transactions == 1
    assert stats.last_updated is not None


def test_reset_clears_history(detector: FraudDetector) -> None:
    detector.add_transactions([make_tx(at=BASE + timedelta(days=i)) for i in range(6)])
    detector.report_fraud("tx-1")

    detector.reset()

    stats = detector.statistics()
    assert stats.transactions_analyzed == 0
    assert stats.reported_transactions == 0
