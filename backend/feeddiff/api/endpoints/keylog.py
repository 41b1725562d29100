"""Diff log endpoints: batch submission, filtered queries and purges."""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional
from datetime import datetime
import logging

from feeddiff.api import deps
from feeddiff.core.config import settings
from feeddiff.schemas.keylog import (
    CountResponse, EndpointListResponse, KeyLogBatchCreate, KeyLogBatchResponse,
    KeyLogListResponse, KeyLogResponse, KeyPathListResponse, PurgeResponse,
    RequestLogResponse
)
from feeddiff.services.keylog_store import (
    FindingFilter, InvalidFilterError, InvalidFindingError, KeyLogStore, KeyLogStoreError
)

router = APIRouter()
logger = logging.getLogger(__name__)

STORE_ERRORS = (KeyLogStoreError, InvalidFilterError, InvalidFindingError)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    return value or None


@router.post("", response_model=KeyLogBatchResponse)
async def log_keys(
    batch: KeyLogBatchCreate,
    store: KeyLogStore = Depends(deps.get_keylog_store)
) -> KeyLogBatchResponse:
    """
    Log tracked key findings for one comparison.

    With both `response_left` and `response_right` the full responses are
    stored as a request and every finding is linked to it, atomically.
    Otherwise the findings are stored on their own.
    """
    logger.info("Logging %d keys for endpoint '%s'", len(batch.keys), batch.endpoint)

    try:
        if batch.has_responses:
            request_id = await store.log_batch(
                batch.timestamp,
                batch.endpoint,
                batch.response_left,
                batch.response_right,
                [key.to_finding() for key in batch.keys],
            )
            return KeyLogBatchResponse(count=len(batch.keys), request_id=request_id)

        written = await store.log_key_findings(
            [key.to_entry(batch.timestamp, batch.endpoint) for key in batch.keys]
        )
        return KeyLogBatchResponse(count=written)
    except STORE_ERRORS as e:
        raise deps.store_error_to_http(e)


@router.get("", response_model=KeyLogListResponse)
async def query_keys(
    store: KeyLogStore = Depends(deps.get_keylog_store),
    endpoint: Optional[str] = Query(None, description="Logical endpoint name"),
    key_path: Optional[List[str]] = Query(None, description="Key path; repeat for several"),
    since: Optional[datetime] = Query(None, description="Only findings at or after this time"),
    limit: int = Query(settings.KEYLOG_DEFAULT_QUERY_LIMIT, description="Maximum number of findings"),
) -> KeyLogListResponse:
    """Query logged findings, newest first."""
    filters = FindingFilter(
        endpoint=_blank_to_none(endpoint),
        key_paths=key_path,
        since=since,
        limit=limit,
    )
    try:
        records = await store.query_findings(filters)
    except STORE_ERRORS as e:
        raise deps.store_error_to_http(e)

    items = [KeyLogResponse.from_record(record) for record in records]
    return KeyLogListResponse(items=items, count=len(items))


@router.get("/endpoints", response_model=EndpointListResponse)
async def list_endpoints(
    store: KeyLogStore = Depends(deps.get_keylog_store)
) -> EndpointListResponse:
    return EndpointListResponse(endpoints=await store.distinct_endpoints())


@router.get("/keypaths", response_model=KeyPathListResponse)
async def list_key_paths(
    endpoint: str = Query(..., min_length=1),
    store: KeyLogStore = Depends(deps.get_keylog_store)
) -> KeyPathListResponse:
    return KeyPathListResponse(
        endpoint=endpoint,
        key_paths=await store.distinct_key_paths(endpoint),
    )


@router.get("/count", response_model=CountResponse)
async def count_keys(
    store: KeyLogStore = Depends(deps.get_keylog_store),
    endpoint: Optional[str] = Query(None),
    key_path: Optional[List[str]] = Query(None),
) -> CountResponse:
    try:
        count = await store.count(endpoint=_blank_to_none(endpoint), key_paths=key_path)
    except STORE_ERRORS as e:
        raise deps.store_error_to_http(e)
    return CountResponse(count=count)


@router.get("/requests/{request_id}", response_model=RequestLogResponse)
async def get_request_log(
    request_id: int,
    store: KeyLogStore = Depends(deps.get_keylog_store)
) -> RequestLogResponse:
    """Return both full responses of a logged comparison."""
    record = await store.get_request(request_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Request log not found"
        )
    return RequestLogResponse.from_record(record)


@router.delete("", response_model=PurgeResponse)
async def purge_keys(
    store: KeyLogStore = Depends(deps.get_keylog_store),
    endpoint: Optional[str] = Query(None, description="Only purge this endpoint"),
    before: Optional[datetime] = Query(None, description="Only purge findings created before this time"),
) -> PurgeResponse:
    """Delete findings. Request logs are kept."""
    try:
        deleted = await store.purge(endpoint=_blank_to_none(endpoint), before=before)
    except STORE_ERRORS as e:
        raise deps.store_error_to_http(e)

    logger.info("Purged %d findings (endpoint=%s)", deleted, endpoint)
    return PurgeResponse(deleted=deleted)


@router.delete("/requests", response_model=PurgeResponse)
async def purge_requests(
    store: KeyLogStore = Depends(deps.get_keylog_store),
    endpoint: Optional[str] = Query(None, description="Only purge this endpoint"),
) -> PurgeResponse:
    """Delete request logs; their findings are kept but detached."""
    try:
        deleted = await store.purge_requests(endpoint=_blank_to_none(endpoint))
    except STORE_ERRORS as e:
        raise deps.store_error_to_http(e)
    return PurgeResponse(deleted=deleted)
