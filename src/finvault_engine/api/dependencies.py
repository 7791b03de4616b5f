from fastapi import HTTPException, Request

from finvault_engine.manager import EngineService


def get_service(request: Request) -> EngineService:
    service = getattr(request.app.state, "service", None)
    if not service:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return service
