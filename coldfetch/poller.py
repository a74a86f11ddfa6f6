"""
Completion Poller

Waits on the notification queue for the job-completion message. A retrieval
job takes hours, so the poller distinguishes two situations:

- Empty queue: the normal steady state. Sleep for the polling interval and
  fetch again, forever. Never counts against the retry budget.
- Fetch error: a transient infrastructure failure. Sleep a short cooldown and
  retry, but only up to `max_fetch_retries` consecutive errors, after which
  PollingExhaustedError is raised carrying the last error.

Any successful fetch resets the consecutive-error counter.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from coldfetch.errors import PollingExhaustedError
from coldfetch.utils.aws import call
from coldfetch.utils.schemas import NotificationMessage, RetrievalOptions

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


class CompletionPoller:
    """Fetches at most one notification at a time from the workflow queue."""

    def __init__(
        self,
        sqs_client: Any,
        queue_url: str,
        options: RetrievalOptions,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        """
        Initialize poller.

        Args:
            sqs_client: boto3 SQS client
            queue_url: Queue to poll
            options: Polling interval and fetch-error retry budget
            sleep: Awaitable sleep function, defaults to asyncio.sleep
        """
        self.sqs = sqs_client
        self.queue_url = queue_url
        self.options = options
        self._sleep = sleep or asyncio.sleep
        self._consecutive_failures = 0

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def polling_interval_seconds(self) -> float:
        return self.options.polling_interval_minutes * 60

    def _log_fetch_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Queue fetch failed, retrying after cooldown",
            extra={
                "queue_url": self.queue_url,
                "consecutive_failures": self._consecutive_failures,
                "max_fetch_retries": self.options.max_fetch_retries,
                "cooldown_seconds": self.options.fetch_retry_cooldown_seconds,
                "error": str(error),
            },
        )

    async def _receive(self) -> list[dict[str, Any]]:
        try:
            response = await call(
                self.sqs,
                "receive_message",
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=1,
            )
        except Exception:
            self._consecutive_failures += 1
            raise

        self._consecutive_failures = 0
        return response.get("Messages") or []

    async def fetch(self) -> list[dict[str, Any]]:
        """
        Fetch once, retrying fetch errors within the retry budget.

        Returns:
            Raw SQS messages (zero or one)

        Raises:
            PollingExhaustedError: If consecutive fetch errors exceed the budget
        """
        retrying = AsyncRetrying(
            sleep=self._sleep,
            retry=retry_if_exception_type(Exception),
            stop=stop_after_attempt(self.options.max_fetch_retries + 1),
            wait=wait_fixed(self.options.fetch_retry_cooldown_seconds),
            before_sleep=self._log_fetch_retry,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    messages = await self._receive()
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error(
                "Queue fetch retry budget exhausted",
                extra={
                    "queue_url": self.queue_url,
                    "attempts": e.last_attempt.attempt_number,
                    "error": str(last_error),
                },
            )
            raise PollingExhaustedError(
                f"receive_message failed {e.last_attempt.attempt_number} consecutive times: {last_error}",
                last_error=last_error,
                attempts=e.last_attempt.attempt_number,
            ) from last_error

        return messages

    async def next(self) -> NotificationMessage:
        """
        Block until one message is available.

        Returns:
            The next notification message

        Raises:
            PollingExhaustedError: If consecutive fetch errors exceed the budget
        """
        while True:
            messages = await self.fetch()
            if messages:
                message = NotificationMessage.from_sqs(messages[0])
                logger.info(
                    "Notification received",
                    extra={"queue_url": self.queue_url, "message_id": message.message_id},
                )
                return message

            logger.debug(
                "Notification queue empty, sleeping",
                extra={"queue_url": self.queue_url, "sleep_seconds": self.polling_interval_seconds},
            )
            await self._sleep(self.polling_interval_seconds)
