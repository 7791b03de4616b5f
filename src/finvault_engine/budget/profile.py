from collections.abc import Sequence
from dataclasses import dataclass

from finvault_engine.domain.stats import half_split_trend, iso_week_key, mean, pstdev, upper_median
from finvault_engine.engine.base import ProfileStrategy
from finvault_engine.models import Expense


@dataclass(frozen=True)
class CategoryStats:
    category: str
    count: int
    total: float
    average: float
    median: float
    stdev: float
    trend_factor: float
    share: float  # percent of total spend


@dataclass(frozen=True)
class BudgetProfile:
    sample_count: int
    is_fit: bool
    total_spent: float = 0.0
    weekly_totals: tuple[float, ...] = ()
    weekly_trend: float = 0.0
    categories: tuple[CategoryStats, ...] = ()

    @property
    def weeks_of_history(self) -> int:
        return len(self.weekly_totals)

    @property
    def category_count(self) -> int:
        return len(self.categories)


def category_key(label: str) -> str:
    return label.strip().lower()


class BudgetProfileStrategy(ProfileStrategy[Expense, BudgetProfile]):
    """
    Weekly totals and per-category spending statistics.

    Categories are matched case-insensitively and reported under the first
    spelling seen. Expenses are ordered by timestamp first, so a backfilled
    batch does not distort the trends.
    """

    def __init__(
        self,
        min_samples: int = 5,
        category_trend_window: int = 5,
        weekly_trend_window: int = 6,
        min_weeks_for_trend: int = 3,
    ):
        super().__init__(min_samples)
        self.category_trend_window = category_trend_window
        self.weekly_trend_window = weekly_trend_window
        self.min_weeks_for_trend = min_weeks_for_trend

    def build(self, events: Sequence[Expense]) -> BudgetProfile:
        n = len(events)
        if n == 0:
            return BudgetProfile(sample_count=0, is_fit=False)

        ordered = sorted(events, key=lambda expense: expense.timestamp)
        total_spent = sum(expense.amount for expense in ordered)

        weeks: dict[tuple[int, int], float] = {}
        labels: dict[str, str] = {}
        amounts: dict[str, list[float]] = {}
        for expense in ordered:
            week = iso_week_key(expense.timestamp)
            weeks[week] = weeks.get(week, 0.0) + expense.amount

            key = category_key(expense.category)
            labels.setdefault(key, expense.category.strip())
            amounts.setdefault(key, []).append(expense.amount)

        weekly_totals = tuple(weeks[week] for week in sorted(weeks))
        weekly_trend = 0.0
        if len(weekly_totals) >= self.min_weeks_for_trend:
            weekly_trend = half_split_trend(weekly_totals, window=self.weekly_trend_window)

        categories = tuple(
            self._category_stats(labels[key], values, total_spent)
            for key, values in amounts.items()
        )

        return BudgetProfile(
            sample_count=n,
            is_fit=self.is_fit(n),
            total_spent=total_spent,
            weekly_totals=weekly_totals,
            weekly_trend=weekly_trend,
            categories=categories,
        )

    def _category_stats(self, label: str, values: list[float], total_spent: float) -> CategoryStats:
        category_total = sum(values)
        return CategoryStats(
            category=label,
            count=len(values),
            total=category_total,
            average=mean(values),
            median=upper_median(values),
            stdev=pstdev(values),
            trend_factor=1 + half_split_trend(values, window=self.category_trend_window),
            share=category_total / total_spent * 100 if total_spent > 0 else 0.0,
        )
