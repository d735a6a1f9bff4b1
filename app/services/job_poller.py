"""
Bounded polling of queued inference jobs
"""
import asyncio
import logging
from typing import Any, Dict, Optional
from app.services.inference_client import (
    InferenceClient,
    InferenceError,
    InferenceJobCancelled,
    InferenceJobFailed,
    InferenceJobTimeout,
    InferenceUnauthorized,
)

logger = logging.getLogger(__name__)


async def _wait(interval: float, cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is None:
        await asyncio.sleep(interval)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=interval)
    except asyncio.TimeoutError:
        pass


async def poll_job(
    client: InferenceClient,
    endpoint: str,
    request_id: str,
    max_attempts: int = 120,
    interval: float = 5.0,
    cancel_event: Optional[asyncio.Event] = None,
) -> Dict[str, Any]:
    """
    Polls a queued job until it finishes and returns its result. A status
    check that errors counts as an attempt and polling goes on.

    Raises:
        InferenceJobFailed: provider reported FAILED (carries its error message)
        InferenceJobTimeout: still running after ``max_attempts`` status checks
        InferenceJobCancelled: ``cancel_event`` was set while waiting
        InferenceUnauthorized: the provider rejected the API key
    """
    for attempt in range(1, max_attempts + 1):
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Polling cancelled: request_id={request_id}, attempt={attempt}")
            raise InferenceJobCancelled(f"Polling cancelled for job {request_id}")

        try:
            job = await client.status(endpoint, request_id)
        except InferenceUnauthorized:
            raise
        except InferenceError as e:
            logger.warning(f"Status check failed: request_id={request_id}, attempt={attempt}, error={e}")
            if attempt < max_attempts:
                await _wait(interval, cancel_event)
            continue

        if job.is_completed:
            logger.info(f"Job completed: request_id={request_id}, attempts={attempt}")
            return await client.result(endpoint, request_id)

        if job.is_failed:
            message = job.error or "Job failed"
            logger.warning(f"Job failed: request_id={request_id}, error={message}")
            raise InferenceJobFailed(message)

        if attempt < max_attempts:
            await _wait(interval, cancel_event)

    if cancel_event is not None and cancel_event.is_set():
        raise InferenceJobCancelled(f"Polling cancelled for job {request_id}")

    logger.warning(f"Job polling timed out: request_id={request_id}, attempts={max_attempts}")
    raise InferenceJobTimeout(f"Job {request_id} did not finish after {max_attempts} checks")
