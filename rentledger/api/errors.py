"""API error handling helpers."""

import logging

from fastapi import HTTPException

from rentledger.services.config import EngineConfig, load_config
from rentledger.services.errors import EngineError, error_response

logger = logging.getLogger(__name__)


def raise_engine_error(error: EngineError) -> None:
    """Raise an HTTPException from an EngineError."""
    logger.info("Rejected request: %s (%s)", error.message, error.code)
    raise HTTPException(
        status_code=error.http_status,
        detail=error_response(error),
    )


def get_engine_config() -> EngineConfig:
    """Dependency returning engine configuration (overridden in tests)."""
    return load_config()
