from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from finvault_engine.domain.geo import grid_cell
from finvault_engine.domain.stats import mean, pstdev, sunday_first_weekday
from finvault_engine.engine.base import ProfileStrategy
from finvault_engine.models import Transaction


@dataclass(frozen=True)
class FrequentLocation:
    latitude: float
    longitude: float
    count: int
    frequency: float


@dataclass(frozen=True)
class FraudProfile:
    sample_count: int
    is_fit: bool
    average_amount: float = 0.0
    stdev_amount: float = 0.0
    merchant_counts: dict[str, int] = field(default_factory=dict)
    category_counts: dict[str, int] = field(default_factory=dict)
    hour_histogram: tuple[int, ...] = (0,) * 24
    # Sunday first.
    day_histogram: tuple[int, ...] = (0,) * 7
    frequent_locations: tuple[FrequentLocation, ...] = ()
    timestamps: tuple[datetime, ...] = ()
    last_timestamp: datetime | None = None


class FraudProfileStrategy(ProfileStrategy[Transaction, FraudProfile]):
    """Spending-habit baseline used to judge single transactions."""

    def __init__(self, min_samples: int = 5, max_locations: int = 10):
        super().__init__(min_samples)
        self.max_locations = max_locations

    def build(self, events: Sequence[Transaction]) -> FraudProfile:
        n = len(events)
        if n == 0:
            return FraudProfile(sample_count=0, is_fit=False)

        amounts = [tx.amount for tx in events]
        average = mean(amounts)

        merchants: dict[str, int] = {}
        categories: dict[str, int] = {}
        hours = [0] * 24
        days = [0] * 7
        # cell -> [first latitude, first longitude, count]
        cells: dict[tuple[float, float], list] = {}
        timestamps: list[datetime] = []

        for tx in events:
            merchants[tx.merchant_name] = merchants.get(tx.merchant_name, 0) + 1
            categories[tx.category] = categories.get(tx.category, 0) + 1

            ts = tx.timestamp
            hours[ts.hour] += 1
            days[sunday_first_weekday(ts)] += 1
            timestamps.append(ts)

            if tx.location is not None:
                cell = grid_cell(tx.location.latitude, tx.location.longitude)
                if cell in cells:
                    cells[cell][2] += 1
                else:
                    cells[cell] = [tx.location.latitude, tx.location.longitude, 1]

        # sorted() is stable, so equally frequent cells keep first-seen order.
        ranked = sorted(cells.values(), key=lambda item: item[2], reverse=True)
        locations = tuple(
            FrequentLocation(latitude=lat, longitude=lng, count=count, frequency=count / n)
            for lat, lng, count in ranked[: self.max_locations]
        )

        return FraudProfile(
            sample_count=n,
            is_fit=self.is_fit(n),
            average_amount=average,
            stdev_amount=pstdev(amounts),
            merchant_counts=merchants,
            category_counts=categories,
            hour_histogram=tuple(hours),
            day_histogram=tuple(days),
            frequent_locations=locations,
            timestamps=tuple(timestamps),
            last_timestamp=max(timestamps),
        )
