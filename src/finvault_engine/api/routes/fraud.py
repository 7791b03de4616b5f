import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from finvault_engine.api.dependencies import get_service
from finvault_engine.api.schemas import ReportResponse
from finvault_engine.domain.exceptions import ValidationError
from finvault_engine.manager import EngineService
from finvault_engine.models import FraudStatistics, ScoreResult, Transaction

router = APIRouter(prefix="/fraud", tags=["fraud"])


@router.post("/transactions", response_model=ScoreResult, status_code=201)
async def submit_transaction(
    transaction: Transaction,
    service: Annotated[EngineService, Depends(get_service)],
) -> ScoreResult:
    """Score against the history so far, then record the transaction."""
    try:
        return await asyncio.to_thread(service.score_and_record, transaction)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("/score", response_model=ScoreResult)
async def score_transaction(
    transaction: Transaction,
    service: Annotated[EngineService, Depends(get_service)],
) -> ScoreResult:
    try:
        return await asyncio.to_thread(service.request_anomaly_score, transaction)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("/transactions/{transaction_id}/report", response_model=ReportResponse)
async def report_fraud(
    transaction_id: str,
    service: Annotated[EngineService, Depends(get_service)],
) -> ReportResponse:
    service.report_fraud(transaction_id)
    return ReportResponse(transaction_id=transaction_id)


@router.get("/statistics", response_model=FraudStatistics)
async def fraud_statistics(
    service: Annotated[EngineService, Depends(get_service)],
) -> FraudStatistics:
    return await asyncio.to_thread(service.fraud_statistics)
