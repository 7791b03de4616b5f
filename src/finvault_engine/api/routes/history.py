import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends

from finvault_engine.api.dependencies import get_service
from finvault_engine.logger import get_logger
from finvault_engine.manager import EngineService

logger = get_logger(__name__)

router = APIRouter()


@router.delete("/history")
async def reset_history(
    service: Annotated[EngineService, Depends(get_service)],
) -> dict[str, str]:
    logger.info("[HISTORY] Reset requested by user.")
    await asyncio.to_thread(service.reset_history)
    return {"status": "cleared"}
