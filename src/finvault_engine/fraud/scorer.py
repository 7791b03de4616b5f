"""
On-device transaction anomaly scoring.

A weighted sum of five features against the user's own history, scaled to
0-100. The amount term is an unclamped z-score, so `score_scale` (3 by default)
squeezes it into the display range; both are known approximations.
"""
from datetime import datetime

from finvault_engine.core.configuration import FraudConfig, FraudTriggers, FraudWeights
from finvault_engine.domain.stats import round_half_up
from finvault_engine.engine.pipeline import ScoringPipeline
from finvault_engine.logger import get_logger
from finvault_engine.models import FraudStatistics, MerchantCount, ScoreResult, Transaction

from .features import FraudFeatureExtractor, FraudFeatures
from .profile import FraudProfile

logger = get_logger(__name__)

NORMAL_EXPLANATION = "Transaction appears normal."
ANOMALY_PREFIX = "Potential fraud detected: "
FALLBACK_REASON = "Overall pattern differs from your usual activity"


def weighted_score(features: FraudFeatures, weights: FraudWeights) -> float:
    return (
        weights.amount_deviation * features.amount_deviation
        + weights.time_anomaly * features.time_anomaly
        + weights.location_anomaly * features.location_anomaly
        + weights.merchant_anomaly * features.merchant_anomaly
        + weights.frequency_anomaly * features.frequency_anomaly
    )


def scale_score(weighted: float, score_scale: float) -> int:
    scaled = min(100.0, weighted * 100 / score_scale)
    return max(0, round_half_up(scaled))


def explain_reasons(
    features: FraudFeatures,
    triggers: FraudTriggers,
    transaction: Transaction,
    profile: FraudProfile,
) -> list[str]:
    reasons = []
    if features.amount_deviation > triggers.amount_deviation:
        reasons.append(
            f"Unusual amount ({transaction.amount:.2f}) compared to your average "
            f"({profile.average_amount:.2f})"
        )
    if features.time_anomaly > triggers.time_anomaly:
        reasons.append("Unusual time of day/week for transactions")
    if features.location_anomaly > triggers.location_anomaly:
        reasons.append("Transaction location is unusual for you")
    if features.merchant_anomaly > triggers.merchant_anomaly:
        reasons.append("You rarely transact with this merchant")
    if features.frequency_anomaly > triggers.frequency_anomaly:
        reasons.append("Unusual pattern of transaction frequency")
    return reasons


class FraudDetector:
    def __init__(
        self,
        pipeline: ScoringPipeline[Transaction, FraudProfile],
        config: FraudConfig | None = None,
        extractor: FraudFeatureExtractor | None = None,
    ):
        self.pipeline = pipeline
        self.config = config or FraudConfig()
        self.extractor = extractor or FraudFeatureExtractor(self.config)
        self.reported: dict[str, datetime] = {}

    def detect(self, transaction: Transaction) -> ScoreResult:
        """Score a transaction against the recorded history without recording it."""
        self.pipeline.store.validate(transaction)
        profile = self.pipeline.profile()
        features = self.extractor.extract(transaction, profile)
        fraud_score = scale_score(
            weighted_score(features, self.config.weights),
            self.config.score_scale,
        )
        is_anomaly = fraud_score > self.config.anomaly_threshold

        reasons: list[str] = []
        explanation = NORMAL_EXPLANATION
        if is_anomaly:
            reasons = explain_reasons(features, self.config.triggers, transaction, profile)
            if not reasons:
                reasons = [FALLBACK_REASON]
            explanation = ANOMALY_PREFIX + ", ".join(reasons)
            logger.info(
                "[FRAUD] Flagged %s at %s (score=%d): %s",
                transaction.merchant_name,
                transaction.timestamp,
                fraud_score,
                ", ".join(reasons),
            )

        return ScoreResult(
            fraud_score=fraud_score,
            is_anomaly=is_anomaly,
            sub_scores=features.as_sub_scores(),
            explanation=explanation,
            reasons=reasons,
        )

    def detect_and_record(self, transaction: Transaction) -> ScoreResult:
        """Score against the history so far, then record, as one step."""
        with self.pipeline.lock:
            result = self.detect(transaction)
            self.add_transaction(transaction)
            return result

    def add_transaction(self, transaction: Transaction) -> None:
        self.pipeline.add_event(transaction)

    def add_transactions(self, transactions: list[Transaction]) -> None:
        self.pipeline.add_events(transactions)

    def report_fraud(self, transaction_id: str) -> None:
        # Feedback is recorded only; weights are not adjusted.
        self.reported[transaction_id] = datetime.now()
        logger.info("[FRAUD] Transaction %s reported as fraudulent by user", transaction_id)

    def statistics(self) -> FraudStatistics:
        profile = self.pipeline.profile()
        top = sorted(profile.merchant_counts.items(), key=lambda item: item[1], reverse=True)
        return FraudStatistics(
            transactions_analyzed=profile.sample_count,
            user_profile_complete=profile.sample_count > self.config.profile_complete_after,
            top_merchants=[
                MerchantCount(merchant=merchant, count=count)
                for merchant, count in top[: self.config.top_merchants]
            ],
            reported_transactions=len(self.reported),
            last_updated=self.pipeline.last_refreshed,
        )

    def reset(self) -> None:
        self.pipeline.reset()
        self.reported.clear()
