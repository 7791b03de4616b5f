from collections.abc import Callable
from datetime import datetime
from time import monotonic

from finvault_engine.budget.forecaster import BudgetRecommender
from finvault_engine.budget.profile import BudgetProfileStrategy
from finvault_engine.core.configuration import EngineConfig
from finvault_engine.domain.exceptions import ValidationError
from finvault_engine.engine.event_store import EventStore
from finvault_engine.engine.pipeline import ScoringPipeline
from finvault_engine.fraud.profile import FraudProfileStrategy
from finvault_engine.fraud.scorer import FraudDetector
from finvault_engine.logger import get_logger
from finvault_engine.models import (
    BudgetStatistics,
    Event,
    Expense,
    FraudStatistics,
    Recommendation,
    ScoreResult,
    Transaction,
)
from finvault_engine.storage.base import StorageBackend

logger = get_logger(__name__)


class EngineService:
    """
    Host-facing entry point for both engines.

    Storage, configuration and clocks are injected; nothing here is global, so
    several services (one per test, say) can live side by side.
    """

    def __init__(
        self,
        storage: StorageBackend,
        config: EngineConfig | None = None,
        *,
        today: Callable[[], datetime] = datetime.now,
        clock: Callable[[], float] = monotonic,
        background_writes: bool = True,
    ):
        self.config = config or EngineConfig()
        cfg = self.config

        fraud_store = EventStore(
            storage,
            cfg.fraud_storage_key,
            Transaction,
            cap=cfg.history_cap,
            background_writes=background_writes,
            max_amount=cfg.max_event_amount,
        )
        self.fraud = FraudDetector(
            ScoringPipeline(
                fraud_store,
                FraudProfileStrategy(
                    min_samples=cfg.min_profile_samples,
                    max_locations=cfg.fraud.max_frequent_locations,
                ),
                ttl_seconds=cfg.profile_ttl_seconds,
                clock=clock,
                wall_clock=today,
            ),
            config=cfg.fraud,
        )

        budget_store = EventStore(
            storage,
            cfg.budget_storage_key,
            Expense,
            cap=cfg.history_cap,
            background_writes=background_writes,
            max_amount=cfg.max_event_amount,
        )
        self.budget = BudgetRecommender(
            ScoringPipeline(
                budget_store,
                BudgetProfileStrategy(
                    min_samples=cfg.min_profile_samples,
                    category_trend_window=cfg.budget.category_trend_window,
                    weekly_trend_window=cfg.budget.weekly_trend_window,
                    min_weeks_for_trend=cfg.budget.min_weeks_for_trend,
                ),
                ttl_seconds=cfg.profile_ttl_seconds,
                clock=clock,
                wall_clock=today,
            ),
            config=cfg.budget,
            today=today,
        )

    def submit_event(self, event: Event) -> None:
        if isinstance(event, Transaction):
            self.fraud.add_transaction(event)
        elif isinstance(event, Expense):
            self.budget.add_expense(event)
        else:
            raise ValidationError(f"Unsupported event type: {type(event).__name__}")

    def submit_expenses(self, expenses: list[Expense]) -> None:
        self.budget.add_expenses(expenses)

    def request_anomaly_score(self, transaction: Transaction) -> ScoreResult:
        return self.fraud.detect(transaction)

    def score_and_record(self, transaction: Transaction) -> ScoreResult:
        return self.fraud.detect_and_record(transaction)

    def request_recommendation(self) -> Recommendation:
        return self.budget.generate_recommendation()

    def report_fraud(self, transaction_id: str) -> None:
        self.fraud.report_fraud(transaction_id)

    def fraud_statistics(self) -> FraudStatistics:
        return self.fraud.statistics()

    def budget_statistics(self) -> BudgetStatistics:
        return self.budget.statistics()

    def reset_history(self) -> None:
        """Wipe both histories, in memory and on disk."""
        self.fraud.reset()
        self.budget.reset()
        logger.info("All engine history cleared.")

    def close(self) -> None:
        self.fraud.pipeline.store.close()
        self.budget.pipeline.store.close()
