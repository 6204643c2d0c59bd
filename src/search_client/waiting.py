"""
Polling for asynchronous task completion.

Indexing operations and API key creation are applied asynchronously by
the service. TaskPoller repeatedly runs a status check until it reports
done, sleeping on a staircase schedule between checks:

    sleep after check i = ceil(i / 10) * base_interval

With the default 0.1s base this gives 0.1s after checks 1-9, 0.2s after
checks 10-19, and so on. The loop makes at most max_retries checks and
raises TaskTooLongError when none of them succeeded.
"""

import asyncio
import math
from collections.abc import Awaitable, Callable
from typing import Optional

import structlog

from search_client.config import Settings
from search_client.exceptions import TaskTooLongError
from search_client.monitoring.metrics import wait_polls_total


logger = structlog.get_logger(__name__)

StatusCheck = Callable[[], Awaitable[bool]]


class TaskPoller:
    """
    Staircase-backoff poller shared by every waiter.

    Attributes:
        max_retries: Maximum number of status checks per wait
        base_interval: Staircase step in seconds
    """

    def __init__(
        self,
        max_retries: int = 100,
        base_interval: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the poller.

        Args:
            max_retries: Maximum number of status checks per wait (>= 1)
            base_interval: Staircase step in seconds
            sleep: Async sleep function (injectable for tests)
        """
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.max_retries = max_retries
        self.base_interval = base_interval
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "TaskPoller":
        return cls(
            max_retries=settings.WAIT_TASK_MAX_RETRIES,
            base_interval=settings.WAIT_TASK_BASE_INTERVAL,
        )

    def delay_for(self, retry: int, base_interval: Optional[float] = None) -> float:
        """Sleep duration after the retry-th check (1-based)."""
        step = self.base_interval if base_interval is None else base_interval
        return math.ceil(retry / 10) * step

    async def wait_until_done(
        self,
        check: StatusCheck,
        description: str,
        max_retries: Optional[int] = None,
        base_interval: Optional[float] = None,
    ) -> None:
        """
        Run check until it returns True.

        Args:
            check: Async callable performing one status check
            description: Resource description used in the timeout error
            max_retries: Per-call override of the check budget
            base_interval: Per-call override of the staircase step

        Raises:
            TaskTooLongError: No check succeeded within the budget
        """
        budget = self.max_retries if max_retries is None else max_retries
        if budget < 1:
            raise ValueError("max_retries must be >= 1")

        for retry in range(1, budget + 1):
            if await check():
                wait_polls_total.labels(outcome="done").inc()
                logger.debug("Wait finished", resource=description, checks=retry)
                return

            wait_polls_total.labels(outcome="pending").inc()
            if retry < budget:
                await self._sleep(self.delay_for(retry, base_interval))

        wait_polls_total.labels(outcome="too_long").inc()
        logger.warning("Wait budget exhausted", resource=description, checks=budget)
        raise TaskTooLongError(
            f"{description} isn't ready after {budget} checks.",
            details={"resource": description, "checks": budget},
        )
