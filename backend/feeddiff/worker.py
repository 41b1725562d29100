import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
import structlog
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from feeddiff.core.config import settings
from feeddiff.core.database import AsyncSessionLocal
from feeddiff.core.logging import setup_logging
from feeddiff.schemas.compare import CompareRequest
from feeddiff.schemas.keylog import KeyLogBatchCreate
from feeddiff.services.comparison import compare_trees
from feeddiff.services.keylog_store import InvalidFindingError, KeyLogStore, KeyLogStoreError

logger = structlog.get_logger()


class ComparisonWorker:
    """Consumes comparison and log tasks from a Redis list."""

    def __init__(self, store: KeyLogStore, queue: str = settings.WORKER_QUEUE,
                 max_retries: int = settings.WORKER_MAX_RETRIES, retry_wait=None):
        self.store = store
        self.queue = queue
        self.max_retries = max_retries
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)
        self.redis = None
        self.running = True

    async def connect(self):
        self.redis = await redis.from_url(settings.REDIS_URL)
        logger.info("worker_connected", queue=self.queue)

    async def _with_retry(self, operation):
        """Retry a whole-batch write on storage failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self.retry_wait,
            retry=retry_if_exception_type(KeyLogStoreError),
            reraise=True,
        ):
            with attempt:
                return await operation()

    async def process_task(self, task_data) -> Optional[Dict[str, Any]]:
        """Process a single task; returns a result summary or None if dropped."""
        try:
            task = json.loads(task_data)
        except (TypeError, ValueError) as e:
            logger.warning("task_not_json", error=str(e))
            return None

        task_type = task.get('type') if isinstance(task, dict) else None
        logger.info("processing_task", task_type=task_type)

        try:
            if task_type == 'log_batch':
                return await self.handle_log_batch(task)
            if task_type == 'compare':
                return await self.handle_compare(task)
        except ValidationError as e:
            logger.warning("task_invalid", task_type=task_type, errors=e.errors())
            return None
        except InvalidFindingError as e:
            logger.warning("task_invalid", task_type=task_type, error=str(e))
            return None

        logger.warning("unknown_task_type", task_type=task_type)
        return None

    async def handle_log_batch(self, task) -> Dict[str, Any]:
        """Handle a key log submission, same shape as POST /api/keylog."""
        batch = KeyLogBatchCreate.model_validate(task.get('payload'))

        if batch.has_responses:
            request_id = await self._with_retry(lambda: self.store.log_batch(
                batch.timestamp,
                batch.endpoint,
                batch.response_left,
                batch.response_right,
                [key.to_finding() for key in batch.keys],
            ))
            logger.info("batch_logged", endpoint=batch.endpoint, request_id=request_id)
            return {"request_id": request_id, "count": len(batch.keys)}

        # Chunked writes are not retried
        written = await self.store.log_key_findings(
            [key.to_entry(batch.timestamp, batch.endpoint) for key in batch.keys]
        )
        logger.info("findings_logged", endpoint=batch.endpoint, count=written)
        return {"request_id": None, "count": written}

    async def handle_compare(self, task) -> Optional[Dict[str, Any]]:
        """Compare two responses and log the classified key paths."""
        payload = CompareRequest.model_validate(task.get('payload'))
        if not payload.endpoint:
            logger.warning("compare_task_without_endpoint")
            return None

        report = compare_trees(
            payload.left,
            payload.right,
            key_paths=payload.key_paths,
            ignored_keys=payload.ignored_keys,
            max_count=payload.max_count,
        )
        timestamp = payload.timestamp or datetime.now(timezone.utc)
        request_id = await self._with_retry(lambda: self.store.log_batch(
            timestamp,
            payload.endpoint,
            payload.left,
            payload.right,
            [item.to_finding() for item in report.findings],
        ))
        logger.info(
            "comparison_logged",
            endpoint=payload.endpoint,
            request_id=request_id,
            equal=report.equal,
            differences=report.difference_count,
        )
        return {
            "request_id": request_id,
            "equal": report.equal,
            "difference_count": report.difference_count,
            "summary": report.summary,
        }

    async def run(self):
        """Main worker loop"""
        await self.connect()

        while self.running:
            try:
                # Blocking pop from queue
                task_data = await self.redis.blpop(self.queue, timeout=1)
                if task_data:
                    await self.process_task(task_data[1])
            except KeyLogStoreError as e:
                logger.error("task_failed", error=str(e))
            except RedisError as e:
                logger.error("redis_error", error=str(e))
                await asyncio.sleep(5)

    async def shutdown(self):
        self.running = False
        if self.redis:
            await self.redis.aclose()


async def main():
    setup_logging()
    worker = ComparisonWorker(KeyLogStore.from_settings(AsyncSessionLocal))
    try:
        await worker.run()
    except (KeyboardInterrupt, asyncio.CancelledError):
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
