from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest

from finvault_engine.core.configuration import EngineConfig
from finvault_engine.domain.exceptions import ValidationError
from finvault_engine.manager import EngineService
from finvault_engine.models import Event, Expense, Transaction
from finvault_engine.storage.json_file import JsonFileStorage
from finvault_engine.storage.memory import InMemoryStorage

BASE = datetime(2026, 3, 2, 12, 0)
TODAY = datetime(2026, 3, 25, 9, 0)


def make_service(storage=None, **kwargs) -> EngineService:
    return EngineService(
        storage or InMemoryStorage(),
        today=lambda: TODAY,
        background_writes=False,
        **kwargs,
    )


def test_submit_event_routes_by_type() -> None:
    service = make_service()

    service.submit_event(Transaction(amount=12.0, timestamp=BASE, merchant_name="Cafe"))
    service.submit_event(Expense(amount=30.0, timestamp=BASE, category="Groceries"))

    assert service.fraud_statistics().transactions_analyzed == 1
    assert service.budget_statistics().total_expenses == 1


def test_submit_event_rejects_plain_event() -> None:
    service = make_service()
    with pytest.raises(ValidationError):
        service.submit_event(Event(amount=10.0, timestamp=BASE))


def test_score_request_leaves_history_untouched() -> None:
    service = make_service()
    result = service.request_anomaly_score(Transaction(amount=12.0, timestamp=BASE, merchant_name="Cafe"))

    assert 0 <= result.fraud_score <= 100
    assert service.fraud_statistics().transactions_analyzed == 0


def test_storage_keys_are_separate() -> None:
    storage = InMemoryStorage()
    service = make_service(storage)
    service.submit_event(Transaction(amount=12.0, timestamp=BASE, merchant_name="Cafe"))
    service.submit_expenses([Expense(amount=30.0, timestamp=BASE, category="Groceries")])

    config = EngineConfig()
    assert set(storage.data) == {config.fraud_storage_key, config.budget_storage_key}


def test_history_cap_comes_from_config() -> None:
    service = make_service(config=EngineConfig(history_cap=3))
    service.submit_expenses(
        [Expense(amount=float(i + 1), timestamp=BASE + timedelta(days=i)) for i in range(5)]
    )
    assert service.budget_statistics().total_spent == pytest.approx(3.0 + 4.0 + 5.0)


def test_reset_history_clears_both_engines() -> None:
    storage = InMemoryStorage()
    service = make_service(storage)
    service.submit_event(Transaction(amount=12.0, timestamp=BASE, merchant_name="Cafe"))
    service.submit_expenses([Expense(amount=30.0, timestamp=BASE, category="Groceries")])

    service.reset_history()

    assert service.fraud_statistics().transactions_analyzed == 0
    assert service.budget_statistics().total_expenses == 0
    assert storage.data == {}


def test_history_survives_restart(tmp_path) -> None:
    storage = JsonFileStorage(str(tmp_path))
    first = EngineService(storage, today=lambda: TODAY)
    first.submit_expenses(
        [Expense(amount=20.0, timestamp=BASE + timedelta(days=i), category="Dining") for i in range(6)]
    )
    first.submit_event(Transaction(amount=12.0, timestamp=BASE, merchant_name="Cafe"))
    first.close()

    second = make_service(JsonFileStorage(str(tmp_path)))

    assert second.budget_statistics().total_expenses == 6
    assert second.fraud_statistics().transactions_analyzed == 1
    recommendation = second.request_recommendation()
    assert recommendation.rationale[0].startswith("Based on your past")


def test_huge_amounts_rejected_and_scoring_keeps_working() -> None:
    service = make_service()
    service.submit_expenses([Expense(amount=40.0, timestamp=BASE, category="Groceries")])
    for _ in range(5):
        with pytest.raises(ValidationError):
            service.submit_event(Transaction(amount=1e308, timestamp=BASE, merchant_name="Cafe"))
    with pytest.raises(ValidationError):
        service.submit_expenses([Expense(amount=1e308, timestamp=BASE) for _ in range(6)])
    with pytest.raises(ValidationError):
        service.request_anomaly_score(Transaction(amount=1e308, timestamp=BASE, merchant_name="Cafe"))

    result = service.request_anomaly_score(Transaction(amount=12.0, timestamp=BASE, merchant_name="Cafe"))
    assert 0 <= result.fraud_score <= 100
    assert service.request_recommendation().weekly_total == 500


def test_max_event_amount_comes_from_config() -> None:
    service = make_service(config=EngineConfig(max_event_amount=1000.0))
    with pytest.raises(ValidationError):
        service.score_and_record(Transaction(amount=1500.0, timestamp=BASE, merchant_name="Cafe"))
    assert service.fraud_statistics().transactions_analyzed == 0


def test_score_and_record_sees_every_earlier_transaction() -> None:
    service = make_service()
    transaction = Transaction(amount=12.0, timestamp=BASE, merchant_name="Cafe")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: service.score_and_record(transaction), range(20)))

    # Each call is scored against a different history length, so the
    # velocity term never repeats.
    frequencies = {result.sub_scores.frequency_anomaly for result in results}
    assert len(frequencies) == 20
    assert service.fraud_statistics().transactions_analyzed == 20
