import os

import uvicorn

from finvault_engine.core import settings
from finvault_engine.logger import get_logging_config


def main() -> None:
    uvicorn.run(
        "finvault_engine.app:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=settings.get_env_int("PORT", 8000, min_value=1),
        log_config=get_logging_config(),
    )


if __name__ == "__main__":
    main()
