from typing import Optional

from fastapi import HTTPException, status

from feeddiff.core.database import AsyncSessionLocal
from feeddiff.services.keylog_store import KeyLogStore, InvalidFilterError, InvalidFindingError
import logging

logger = logging.getLogger(__name__)

_store: Optional[KeyLogStore] = None


def get_keylog_store() -> KeyLogStore:
    """Store bound to the application database (overridden in tests)."""
    global _store
    if _store is None:
        _store = KeyLogStore.from_settings(AsyncSessionLocal)
    return _store


def store_error_to_http(error: Exception) -> HTTPException:
    """Map store exceptions to client (400) or server (500) errors."""
    if isinstance(error, (InvalidFilterError, InvalidFindingError)):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(error)
        )
    logger.error(f"Key log storage error: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Key log storage error"
    )
