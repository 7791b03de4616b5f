import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from finvault_engine.api.dependencies import get_service
from finvault_engine.api.schemas import SubmitResponse
from finvault_engine.domain.exceptions import ValidationError
from finvault_engine.manager import EngineService
from finvault_engine.models import BudgetStatistics, Expense, Recommendation

router = APIRouter(prefix="/budget", tags=["budget"])


@router.post("/expenses", response_model=SubmitResponse, status_code=201)
async def submit_expenses(
    expenses: list[Expense] | Expense,
    service: Annotated[EngineService, Depends(get_service)],
) -> SubmitResponse:
    batch = expenses if isinstance(expenses, list) else [expenses]
    try:
        await asyncio.to_thread(service.submit_expenses, batch)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return SubmitResponse(stored=len(batch))


@router.get("/recommendation", response_model=Recommendation)
async def get_recommendation(
    service: Annotated[EngineService, Depends(get_service)],
) -> Recommendation:
    return await asyncio.to_thread(service.request_recommendation)


@router.get("/statistics", response_model=BudgetStatistics)
async def budget_statistics(
    service: Annotated[EngineService, Depends(get_service)],
) -> BudgetStatistics:
    return await asyncio.to_thread(service.budget_statistics)
