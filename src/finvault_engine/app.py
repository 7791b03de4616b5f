from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from finvault_engine.api.routes import budget, fraud, history
from finvault_engine.core import settings
from finvault_engine.core.configuration import EngineConfig
from finvault_engine.logger import get_logger, setup_logging
from finvault_engine.manager import EngineService
from finvault_engine.storage.json_file import JsonFileStorage

logger = get_logger(__name__)


def create_app(service: EngineService | None = None) -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = service is None
        if owned:
            logger.info("Initializing engine...")
            settings.log_environment()
            engine = EngineService(
                storage=JsonFileStorage(settings.DATA_DIR),
                config=EngineConfig.from_env(),
            )
        else:
            engine = service

        app.state.service = engine
        logger.info("Engine ready.")
        yield
        logger.info("Engine shutting down.")
        if owned:
            engine.close()

    app = FastAPI(title="FinVault Engine", lifespan=lifespan)

    app.include_router(fraud.router)
    app.include_router(budget.router)
    app.include_router(history.router)

    return app


app = create_app()
