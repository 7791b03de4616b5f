"""
Short-horizon spending forecast and weekly budget recommendation.

Warm path: mean weekly total, nudged by the recent weekly trend and a fixed
seasonality table. Below the minimum history a starter budget is returned
instead; sparse data is normal and never raises.
"""
from collections.abc import Callable
from datetime import datetime

from finvault_engine.core.configuration import BudgetConfig
from finvault_engine.domain.stats import mean, round_half_up, sunday_first_weekday
from finvault_engine.engine.pipeline import ScoringPipeline
from finvault_engine.logger import get_logger
from finvault_engine.models import (
    BudgetStatistics,
    CategoryRecommendation,
    Expense,
    Recommendation,
)

from .profile import BudgetProfile, CategoryStats, category_key

logger = get_logger(__name__)

LOW_DATA_HINT = "Add more manual expenses for improved recommendations"
STARTER_BUDGET_NOTE = "This is a starter budget to help you begin tracking"


def seasonal_factor(today: datetime, config: BudgetConfig) -> float:
    day_factor = config.day_of_week_factors[sunday_first_weekday(today)]
    month_factor = config.month_factors[today.month - 1]
    return (day_factor + month_factor) / 2


def confidence_score(event_count: int, weeks: int, categories: int, config: BudgetConfig) -> int:
    """
    0-100 confidence from history size, weeks covered and category diversity.

    Each term is capped at its own points before summing, so a long history in
    one category cannot make up for a single week of data.
    """
    events_term = min(
        config.confidence_event_points,
        config.confidence_event_points * event_count / config.confidence_event_target,
    )
    weeks_term = min(
        config.confidence_weeks_points,
        config.confidence_weeks_points * weeks / config.confidence_weeks_target,
    )
    category_term = min(
        config.confidence_category_points,
        config.confidence_category_points * categories / config.confidence_category_target,
    )
    total = max(0.0, events_term) + max(0.0, weeks_term) + max(0.0, category_term)
    return max(0, min(100, round_half_up(total)))


def cold_start_confidence(event_count: int, config: BudgetConfig) -> int:
    return max(
        0,
        min(config.cold_start_confidence_cap, event_count * config.cold_start_confidence_per_event),
    )


def compare_to_average(trend_factor: float, config: BudgetConfig) -> str:
    if trend_factor > config.higher_factor:
        return "higher"
    if trend_factor < config.lower_factor:
        return "lower"
    return "similar"


class BudgetRecommender:
    def __init__(
        self,
        pipeline: ScoringPipeline[Expense, BudgetProfile],
        config: BudgetConfig | None = None,
        today: Callable[[], datetime] = datetime.now,
    ):
        self.pipeline = pipeline
        self.config = config or BudgetConfig()
        self.today = today

    def add_expense(self, expense: Expense) -> None:
        self.pipeline.add_event(expense)

    def add_expenses(self, expenses: list[Expense]) -> None:
        self.pipeline.add_events(expenses)

    def generate_recommendation(self) -> Recommendation:
        profile = self.pipeline.profile()
        if not profile.is_fit:
            return self._starter_recommendation(profile)
        return self._recommendation(profile)

    def _recommendation(self, profile: BudgetProfile) -> Recommendation:
        cfg = self.config
        seasonal = seasonal_factor(self.today(), cfg)
        trend = profile.weekly_trend
        forecast = mean(profile.weekly_totals) * (1 + trend) * seasonal

        breakdown = [self._category_line(stats, seasonal) for stats in profile.categories]
        breakdown.sort(key=lambda line: line.amount, reverse=True)

        savings_rate = cfg.savings_rate_rising if trend > 0 else cfg.savings_rate_flat

        rationale = [f"Based on your past {profile.weeks_of_history} weeks of spending data"]
        if trend > cfg.stable_trend_band:
            rationale.append(f"Your spending is trending upward ({round_half_up(trend * 100)}% increase)")
        elif trend < -cfg.stable_trend_band:
            rationale.append(
                f"Your spending is trending downward ({round_half_up(abs(trend) * 100)}% decrease)"
            )
        else:
            rationale.append("Your spending has been relatively stable")

        high = [
            line.category
            for line in breakdown
            if line.compared_to_average == "higher" and line.percent_of_total > cfg.rationale_share
        ]
        if high:
            rationale.append(f"You're spending more than usual on: {', '.join(high)}")

        # The starter score acts as a floor so confidence never drops when
        # history crosses the cold-start threshold.
        confidence = max(
            cold_start_confidence(profile.sample_count, cfg),
            confidence_score(
                profile.sample_count,
                profile.weeks_of_history,
                profile.category_count,
                cfg,
            ),
        )

        logger.debug(
            "[BUDGET] forecast=%.2f trend=%.3f seasonal=%.3f confidence=%d",
            forecast,
            trend,
            seasonal,
            confidence,
        )
        weekly = round_half_up(forecast)
        return Recommendation(
            weekly_total=weekly,
            category_breakdown=breakdown,
            confidence_score=confidence,
            next_week_forecast=weekly,
            savings_recommendation=round_half_up(forecast * savings_rate),
            rationale=rationale,
        )

    def _category_line(self, stats: CategoryStats, seasonal: float) -> CategoryRecommendation:
        cfg = self.config
        warning = None
        if stats.trend_factor > cfg.warning_factor and stats.share > cfg.warning_share:
            warning = f"Spending in {stats.category} is trending up significantly"
        return CategoryRecommendation(
            category=stats.category,
            amount=round_half_up(stats.average * stats.trend_factor * seasonal),
            percent_of_total=round_half_up(stats.share),
            compared_to_average=compare_to_average(stats.trend_factor, cfg),
            warning=warning,
        )

    def _starter_recommendation(self, profile: BudgetProfile) -> Recommendation:
        cfg = self.config
        n = profile.sample_count
        per_event = profile.total_spent / max(1, n)
        estimate = max(round_half_up(cfg.weekly_floor), round_half_up(per_event * cfg.assumed_events_per_week))

        breakdown = []
        for stats in profile.categories:
            share = round_half_up(stats.total / max(1.0, profile.total_spent) * 100)
            breakdown.append(
                CategoryRecommendation(
                    category=stats.category,
                    amount=round_half_up(estimate * share / 100),
                    percent_of_total=share,
                )
            )

        if len(breakdown) < cfg.min_breakdown_categories:
            known = {category_key(line.category) for line in breakdown}
            for category in cfg.common_categories:
                if category_key(category) in known:
                    continue
                breakdown.append(
                    CategoryRecommendation(
                        category=category,
                        amount=round_half_up(estimate * cfg.padded_category_share / 100),
                        percent_of_total=cfg.padded_category_share,
                    )
                )
        breakdown.sort(key=lambda line: line.amount, reverse=True)

        return Recommendation(
            weekly_total=estimate,
            category_breakdown=breakdown,
            confidence_score=cold_start_confidence(n, cfg),
            next_week_forecast=estimate,
            savings_recommendation=round_half_up(estimate * cfg.savings_rate_flat),
            rationale=[
                f"Based on limited data ({n} expense entries)",
                LOW_DATA_HINT,
                STARTER_BUDGET_NOTE,
            ],
        )

    def statistics(self) -> BudgetStatistics:
        profile = self.pipeline.profile()
        if not profile.is_fit:
            level = "Low"
        elif profile.sample_count > self.config.high_confidence_after:
            level = "High"
        else:
            level = "Medium"
        return BudgetStatistics(
            total_expenses=profile.sample_count,
            weeks_of_data=profile.weeks_of_history,
            categories_tracked=profile.category_count,
            total_spent=profile.total_spent,
            confidence_level=level,
            last_updated=self.pipeline.last_refreshed,
        )

    def reset(self) -> None:
        self.pipeline.reset()
