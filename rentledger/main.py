"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from rentledger.api.payment import router as payment_router
from rentledger.api.reports import router as reports_router
from rentledger.config import settings
from rentledger.services.config import load_config
from rentledger.services.db import init_db
from rentledger.services.logging import setup_server_logging

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and the database before serving requests."""
    config = load_config()
    setup_server_logging(config.log_file, settings.log_level)
    init_db(config.database_url)
    logger.info("%s %s started", settings.api_title, settings.api_version)
    yield
    logger.info("%s stopped", settings.api_title)


app = FastAPI(
    title=settings.api_title,
    description="Rent payment allocation and owner revenue distribution",
    version=settings.api_version,
    lifespan=lifespan,
)

app.include_router(payment_router)
app.include_router(reports_router)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {"status": "ok"}


def main() -> None:
    """Run the API server."""
    uvicorn.run("rentledger.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
