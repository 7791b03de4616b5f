from datetime import datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class Event(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    amount: float
    timestamp: Optional[datetime] = None
    category: str = "other"

    @field_validator("timestamp")
    @classmethod
    def _wall_clock(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Histograms and windows use the wall-clock time recorded on the event.
        if value is not None and value.tzinfo is not None:
            return value.replace(tzinfo=None)
        return value


class Transaction(Event):
    merchant_name: str
    location: Optional[GeoPoint] = None
    id: Optional[str] = None


class Expense(Event):
    timestamp: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("timestamp", "date")
    )
    is_recurring: bool = False


class FraudSubScores(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount_deviation: float
    location_anomaly: float
    time_anomaly: float
    merchant_anomaly: float
    frequency_anomaly: float


class ScoreResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    fraud_score: int = Field(ge=0, le=100)
    is_anomaly: bool
    sub_scores: FraudSubScores
    explanation: str
    reasons: list[str] = Field(default_factory=list)


class CategoryRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    amount: int
    percent_of_total: int
    compared_to_average: Literal["higher", "lower", "similar"] = "similar"
    warning: Optional[str] = None


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    weekly_total: int
    category_breakdown: list[CategoryRecommendation]
    confidence_score: int = Field(ge=0, le=100)
    next_week_forecast: int
    savings_recommendation: int
    rationale: list[str]


class MerchantCount(BaseModel):
    merchant: str
    count: int


class FraudStatistics(BaseModel):
    transactions_analyzed: int
    user_profile_complete: bool
    top_merchants: list[MerchantCount]
    reported_transactions: int = 0
    last_updated: Optional[datetime] = None


class BudgetStatistics(BaseModel):
    total_expenses: int
    weeks_of_data: int
    categories_tracked: int
    total_spent: float
    confidence_level: Literal["Low", "Medium", "High"]
    last_updated: Optional[datetime] = None
