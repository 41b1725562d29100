from fastapi import APIRouter, Depends, HTTPException, status
from datetime import datetime, timezone
import logging

from feeddiff.api import deps
from feeddiff.schemas.compare import (
    CompareRequest, CompareResponse, PathLookupRequest, PathLookupResponse
)
from feeddiff.services.comparison import compare_trees
from feeddiff.services.keylog_store import (
    InvalidFilterError, InvalidFindingError, KeyLogStore, KeyLogStoreError
)
from feeddiff.utils.json_path import get_by_path, get_value_at_path, parse_json_path
from feeddiff.utils.values import ABSENT

router = APIRouter(prefix="/compare")
logger = logging.getLogger(__name__)


@router.post("", response_model=CompareResponse)
async def compare_responses(
    payload: CompareRequest,
    store: KeyLogStore = Depends(deps.get_keylog_store)
) -> CompareResponse:
    """
    Compare two responses ignoring array order.

    Returns whole-tree equality, a bounded difference count and a
    classification for every tracked key path. When `endpoint` is given the
    comparison is logged as one request with its findings.
    """
    report = compare_trees(
        payload.left,
        payload.right,
        key_paths=payload.key_paths,
        ignored_keys=payload.ignored_keys,
        max_count=payload.max_count,
    )
    logger.info(
        "Compared responses: equal=%s differences=%d keys=%d",
        report.equal, report.difference_count, len(report.findings)
    )

    request_id = None
    if payload.endpoint:
        try:
            request_id = await store.log_batch(
                payload.timestamp or datetime.now(timezone.utc),
                payload.endpoint,
                payload.left,
                payload.right,
                [item.to_finding() for item in report.findings],
            )
        except (KeyLogStoreError, InvalidFilterError, InvalidFindingError) as e:
            raise deps.store_error_to_http(e)

    return CompareResponse.from_report(report, request_id=request_id)


@router.post("/path", response_model=PathLookupResponse)
async def lookup_path(payload: PathLookupRequest) -> PathLookupResponse:
    """Resolve a key path against a tree, reporting whether it is present."""
    tokens = parse_json_path(payload.path)
    if payload.strict:
        try:
            get_value_at_path(payload.tree, tokens)
        except KeyError as e:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=e.args[0]
            )

    value = get_by_path(payload.tree, payload.path)
    present = value is not ABSENT
    return PathLookupResponse(
        path=payload.path,
        tokens=tokens,
        present=present,
        value=value if present else None,
    )
