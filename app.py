from __future__ import annotations

import logging
import os

import uvicorn

from cloudstore.core.config import get_settings
from cloudstore.main import app as fastapi_app


app = fastapi_app


def configure_logging() -> None:
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def main() -> None:
    """Run the FastAPI application defined in cloudstore.main."""
    configure_logging()
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "false").lower() == "true",
    )


if __name__ == "__main__":
    main()
