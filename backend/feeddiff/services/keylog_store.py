"""
Persistent diff log: comparison requests and their per-key findings.

A request row holds both full responses of one comparison; finding rows hold
the left/right values of one tracked key path and optionally point at the
request that produced them. Values are stored as JSON text, with SQL NULL
meaning "not present" (a present null is the text ``null``).
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple, Union

from sqlalchemy import Select, delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from feeddiff.core.config import settings
from feeddiff.models.keylog import KeyLog, RequestLog
from feeddiff.utils.values import ABSENT

logger = logging.getLogger(__name__)


class KeyLogStoreError(Exception):
    """The storage engine failed; the affected transaction was rolled back."""

    def __init__(self, message: str, written: int = 0):
        super().__init__(message)
        self.written = written


class InvalidFilterError(ValueError):
    """A query filter combination the store cannot express."""


class InvalidFindingError(ValueError):
    """A finding or response value that cannot be serialized."""


@dataclass(frozen=True)
class KeyFinding:
    """Left/right values of one tracked key path; ABSENT means not present."""

    path: str
    left_value: Any = ABSENT
    right_value: Any = ABSENT


@dataclass(frozen=True)
class FindingEntry:
    """A standalone finding, logged without a parent request."""

    timestamp: datetime
    endpoint: str
    path: str
    left_value: Any = ABSENT
    right_value: Any = ABSENT


@dataclass(frozen=True)
class FindingFilter:
    endpoint: Optional[str] = None
    key_paths: Optional[Union[str, Sequence[str]]] = None
    since: Optional[datetime] = None
    limit: Optional[int] = None


def to_utc(value: datetime) -> datetime:
    """Normalise to an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def encode_value(value: Any) -> Optional[str]:
    if value is ABSENT:
        return None
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise InvalidFindingError(f"Value is not JSON serializable: {e}") from e


def decode_value(text: Optional[str]) -> Any:
    if text is None:
        return ABSENT
    return json.loads(text)


def _normalize_key_paths(
    key_paths: Optional[Union[str, Sequence[str]]],
    max_key_paths: int,
) -> Optional[Tuple[str, ...]]:
    if key_paths is None:
        return None
    if isinstance(key_paths, str):
        key_paths = [key_paths]

    paths = tuple(dict.fromkeys(key_paths))
    if not paths:
        raise InvalidFilterError("key_paths must name at least one key path")
    if any(not isinstance(p, str) or not p for p in paths):
        raise InvalidFilterError("key paths must be non-empty strings")
    if len(paths) > max_key_paths:
        raise InvalidFilterError(
            f"Too many key paths: {len(paths)} (maximum {max_key_paths})"
        )
    return paths


def build_findings_conditions(filters: FindingFilter, max_key_paths: int) -> list:
    """Translate a filter into WHERE clauses (combined with AND)."""
    conditions = []

    if filters.endpoint is not None:
        if not filters.endpoint:
            raise InvalidFilterError("endpoint must not be empty")
        conditions.append(KeyLog.endpoint == filters.endpoint)

    paths = _normalize_key_paths(filters.key_paths, max_key_paths)
    if paths is not None:
        if len(paths) == 1:
            conditions.append(KeyLog.key_path == paths[0])
        else:
            conditions.append(KeyLog.key_path.in_(paths))

    if filters.since is not None:
        conditions.append(KeyLog.timestamp >= to_utc(filters.since))

    return conditions


def build_findings_query(
    filters: FindingFilter,
    max_limit: int,
    max_key_paths: int,
) -> Select:
    """
    Build the SELECT for a findings query.

    Ordered newest first, then by key path, with the id as a final tie-break
    so pages are stable.
    """
    if filters.limit is not None and not 1 <= filters.limit <= max_limit:
        raise InvalidFilterError(f"limit must be between 1 and {max_limit}")

    query = (
        select(KeyLog)
        .where(*build_findings_conditions(filters, max_key_paths))
        .order_by(KeyLog.timestamp.desc(), KeyLog.key_path.asc(), KeyLog.id.desc())
    )
    if filters.limit is not None:
        query = query.limit(filters.limit)
    return query


class KeyLogStore:
    """Async access to the request and finding tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        insert_chunk_size: int = 500,
        max_query_limit: int = 10000,
        max_key_paths: int = 100,
    ):
        self._session_factory = session_factory
        self.insert_chunk_size = insert_chunk_size
        self.max_query_limit = max_query_limit
        self.max_key_paths = max_key_paths

    @classmethod
    def from_settings(cls, session_factory: async_sessionmaker) -> "KeyLogStore":
        return cls(
            session_factory,
            insert_chunk_size=settings.KEYLOG_INSERT_CHUNK_SIZE,
            max_query_limit=settings.KEYLOG_MAX_QUERY_LIMIT,
            max_key_paths=settings.KEYLOG_MAX_KEY_PATHS,
        )

    async def log_batch(
        self,
        timestamp: datetime,
        endpoint: str,
        response_left: Any,
        response_right: Any,
        findings: Sequence[KeyFinding],
    ) -> int:
        """
        Write one request and all of its findings in a single transaction.

        Returns:
            Id of the new request row.

        Raises:
            InvalidFindingError: a value is not serializable (nothing written).
            KeyLogStoreError: the transaction failed and was rolled back.
        """
        timestamp = to_utc(timestamp)
        encoded_left = encode_value(response_left)
        encoded_right = encode_value(response_right)
        rows = [
            (f.path, encode_value(f.left_value), encode_value(f.right_value))
            for f in findings
        ]

        async with self._session_factory() as session:
            try:
                async with session.begin():
                    request = RequestLog(
                        timestamp=timestamp,
                        endpoint=endpoint,
                        response_left=encoded_left,
                        response_right=encoded_right,
                    )
                    session.add(request)
                    await session.flush()
                    request_id = request.id

                    session.add_all([
                        KeyLog(
                            request_id=request_id,
                            timestamp=timestamp,
                            endpoint=endpoint,
                            key_path=path,
                            left_value=left,
                            right_value=right,
                        )
                        for path, left, right in rows
                    ])
            except SQLAlchemyError as e:
                logger.error(f"Log batch for endpoint '{endpoint}' rolled back: {e}", exc_info=True)
                raise KeyLogStoreError("Failed to write log batch") from e

        logger.info(f"Logged request {request_id} for '{endpoint}' with {len(rows)} findings")
        return request_id

    async def log_key_findings(self, entries: Sequence[FindingEntry]) -> int:
        """
        Insert standalone findings, one transaction per chunk.

        Chunks committed before a failure stay committed; the error carries
        the number of rows already written.
        """
        rows = [
            {
                "request_id": None,
                "timestamp": to_utc(entry.timestamp),
                "endpoint": entry.endpoint,
                "key_path": entry.path,
                "left_value": encode_value(entry.left_value),
                "right_value": encode_value(entry.right_value),
            }
            for entry in entries
        ]

        written = 0
        async with self._session_factory() as session:
            for start in range(0, len(rows), self.insert_chunk_size):
                chunk = rows[start:start + self.insert_chunk_size]
                try:
                    async with session.begin():
                        await session.execute(insert(KeyLog), chunk)
                except SQLAlchemyError as e:
                    logger.error(f"Key log chunk at offset {start} rolled back: {e}", exc_info=True)
                    raise KeyLogStoreError("Failed to write key findings", written=written) from e
                written += len(chunk)

        logger.info(f"Logged {written} standalone findings")
        return written

    async def query_findings(self, filters: Optional[FindingFilter] = None) -> List[KeyLog]:
        query = build_findings_query(
            filters or FindingFilter(), self.max_query_limit, self.max_key_paths
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def count(
        self,
        endpoint: Optional[str] = None,
        key_paths: Optional[Union[str, Sequence[str]]] = None,
        since: Optional[datetime] = None,
    ) -> int:
        conditions = build_findings_conditions(
            FindingFilter(endpoint=endpoint, key_paths=key_paths, since=since),
            self.max_key_paths,
        )
        query = select(func.count()).select_from(KeyLog).where(*conditions)
        async with self._session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one()

    async def distinct_endpoints(self) -> List[str]:
        query = select(KeyLog.endpoint).distinct().order_by(KeyLog.endpoint)
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def distinct_key_paths(self, endpoint: str) -> List[str]:
        if not endpoint:
            raise InvalidFilterError("endpoint is required to list key paths")
        query = (
            select(KeyLog.key_path)
            .where(KeyLog.endpoint == endpoint)
            .distinct()
            .order_by(KeyLog.key_path)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def purge(self, endpoint: Optional[str] = None, before: Optional[datetime] = None) -> int:
        """Delete findings for one endpoint, older than `before`, or all of them."""
        query = delete(KeyLog)
        if endpoint is not None:
            if not endpoint:
                raise InvalidFilterError("endpoint must not be empty")
            query = query.where(KeyLog.endpoint == endpoint)
        if before is not None:
            query = query.where(KeyLog.created_at < to_utc(before))

        async with self._session_factory() as session:
            try:
                async with session.begin():
                    deleted = (await session.execute(
                        query, execution_options={"synchronize_session": False}
                    )).rowcount
            except SQLAlchemyError as e:
                logger.error(f"Purge failed: {e}", exc_info=True)
                raise KeyLogStoreError("Failed to purge key logs") from e

        logger.info(f"Purged {deleted} findings (endpoint={endpoint}, before={before})")
        return deleted

    async def purge_requests(self, endpoint: Optional[str] = None) -> int:
        """Delete request rows; findings that referenced them are detached."""
        request_ids = select(RequestLog.id)
        if endpoint is not None:
            if not endpoint:
                raise InvalidFilterError("endpoint must not be empty")
            request_ids = request_ids.where(RequestLog.endpoint == endpoint)

        async with self._session_factory() as session:
            try:
                async with session.begin():
                    await session.execute(
                        update(KeyLog)
                        .where(KeyLog.request_id.in_(request_ids))
                        .values(request_id=None),
                        execution_options={"synchronize_session": False},
                    )
                    query = delete(RequestLog)
                    if endpoint is not None:
                        query = query.where(RequestLog.endpoint == endpoint)
                    deleted = (await session.execute(
                        query, execution_options={"synchronize_session": False}
                    )).rowcount
            except SQLAlchemyError as e:
                logger.error(f"Request purge failed: {e}", exc_info=True)
                raise KeyLogStoreError("Failed to purge request logs") from e

        logger.info(f"Purged {deleted} requests (endpoint={endpoint})")
        return deleted

    async def get_request(self, request_id: int) -> Optional[RequestLog]:
        async with self._session_factory() as session:
            return await session.get(RequestLog, request_id)
