"""Job execution tracking and monitoring for scheduled jobs."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from taskledger.core.config import Constants

logger = logging.getLogger(__name__)

class JobTracker:
    """Track job execution history and health status."""

    def __init__(self) -> None:
        """Initialize job tracker."""
        self._storage: dict[str, dict[str, Any]] = {}
        self._dead_letter_queue: deque[tuple[str, str, str]] = deque(
            maxlen=Constants.TRACKER_DEAD_LETTER_QUEUE_MAXLEN
        )

    def _job(self, job_name: str) -> dict[str, Any]:
        return self._storage.setdefault(job_name, {})

    async def record_job_start(self, job_name: str) -> None:
        """Record job execution start.

        Args:
            job_name: Name of the scheduled job
        """
        self._job(job_name)["current_run"] = datetime.now(UTC).isoformat()

    async def record_job_success(self, job_name: str) -> None:
        """Record successful job execution.

        Args:
            job_name: Name of the scheduled job
        """
        job = self._job(job_name)
        job["last_success"] = datetime.now(UTC).isoformat()
        job["consecutive_failures"] = 0
        job["success_count"] = job.get("success_count", 0) + 1
        job.pop("current_run", None)

    async def record_job_failure(self, job_name: str, error: str) -> int:
        """Record failed job execution.

        Args:
            job_name: Name of the scheduled job
            error: Error message

        Returns:
            Number of consecutive failures
        """
        job = self._job(job_name)
        job["last_failure"] = datetime.now(UTC).isoformat()
        job["last_error"] = error[:500]

        consecutive_failures = job.get("consecutive_failures", 0) + 1
        job["consecutive_failures"] = consecutive_failures
        job["failure_count"] = job.get("failure_count", 0) + 1
        job.pop("current_run", None)

        return consecutive_failures

    async def get_job_status(self, job_name: str) -> dict[str, Any]:
        """Get job execution status.

        Args:
            job_name: Name of the scheduled job

        Returns:
            Dict with job status information
        """
        job_data = self._storage.get(job_name, {})
        return {
            "job_name": job_name,
            "last_success": job_data.get("last_success"),
            "last_failure": job_data.get("last_failure"),
            "last_error": job_data.get("last_error"),
            "consecutive_failures": job_data.get("consecutive_failures", 0),
            "success_count": job_data.get("success_count", 0),
            "failure_count": job_data.get("failure_count", 0),
            "currently_running": "current_run" in job_data,
            "current_run_started": job_data.get("current_run"),
        }

    async def add_to_dead_letter_queue(self, job_name: str, error: str, context: str) -> None:
        """Add persistently failed job to dead letter queue.

        Args:
            job_name: Name of the scheduled job
            error: Error message
            context: Additional context about the failure
        """
        self._dead_letter_queue.append((job_name, error, context))
        logger.error(
            "Job added to dead letter queue",
            extra={
                "job_name": job_name,
                "error": error,
                "context": context,
                "timestamp": datetime.now(UTC).isoformat(),
            },
        )

    def get_dead_letter_queue(self) -> list[dict[str, str]]:
        """Get all items in dead letter queue.

        Returns:
            List of dead letter queue items
        """
        return [
            {
                "job_name": job_name,
                "error": error,
                "context": context,
            }
            for job_name, error, context in self._dead_letter_queue
        ]


async def retry_job_with_backoff(
    job_func: Callable[[], Awaitable[Any]],
    job_name: str,
    *,
    tracker: JobTracker,
    max_retries: int = Constants.JOB_MAX_RETRIES,
    base_delay: float = Constants.JOB_RETRY_BASE_SECONDS,
) -> bool:
    """Execute job with retry logic and exponential backoff.

    Args:
        job_func: Async function to execute
        job_name: Name of the job for tracking
        tracker: Tracker that records the run, owned by the caller
        max_retries: Maximum number of retry attempts
        base_delay: Base delay in seconds for exponential backoff

    Returns:
        True if an attempt succeeded, False once all retries are exhausted
    """
    await tracker.record_job_start(job_name)

    last_error = None
    for attempt in range(max_retries):
        try:
            logger.info("Executing %s (attempt %d/%d)", job_name, attempt + 1, max_retries)
            await job_func()

            await tracker.record_job_success(job_name)
            logger.info("%s completed successfully", job_name)
            return True

        except Exception as e:
            last_error = str(e)
            logger.error(
                "%s failed on attempt %d/%d: %s",
                job_name,
                attempt + 1,
                max_retries,
                last_error,
            )

            if attempt < max_retries - 1:
                delay = base_delay * 2**attempt
                logger.info("Retrying %s in %.1fs", job_name, delay)
                await asyncio.sleep(delay)

    error_msg = f"Failed after {max_retries} attempts: {last_error}"
    consecutive_failures = await tracker.record_job_failure(job_name, error_msg)

    logger.error(
        f"{job_name} failed after all retry attempts",
        extra={
            "error": error_msg,
            "consecutive_failures": consecutive_failures,
        },
    )

    # Persistent failures (3+ consecutive) go to the dead letter queue
    consecutive_failure_threshold = 3
    if consecutive_failures >= consecutive_failure_threshold:
        await tracker.add_to_dead_letter_queue(
            job_name=job_name,
            error=last_error or "Unknown error",
            context=f"Failed {consecutive_failures} consecutive times",
        )

    return False
