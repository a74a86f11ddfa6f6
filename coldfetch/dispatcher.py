"""
Retrieval Dispatcher

Hands a correlated job to the retrieval executor. Executor failures are
wrapped in DispatchError; the consumed message is acknowledged by the
orchestrator only after dispatch succeeds.
"""

import logging
from typing import Optional

from coldfetch.errors import DispatchError
from coldfetch.executor import RetrievalExecutor
from coldfetch.utils.schemas import JobCompletionNotice, WorkflowContext

logger = logging.getLogger(__name__)

FAILED_STATUS = "Failed"


class RetrievalDispatcher:
    """Invokes the retrieval executor for a confirmed job."""

    def __init__(self, executor: RetrievalExecutor) -> None:
        self.executor = executor

    async def dispatch(
        self,
        job_id: str,
        context: WorkflowContext,
        notice: Optional[JobCompletionNotice] = None,
    ) -> None:
        """
        Run the executor for `job_id` and wait for it to finish.

        Args:
            job_id: Job whose output is retrieved
            context: Vault, destination and options
            notice: The correlated completion notice, if available

        Raises:
            DispatchError: If the notice reports a failed job or the executor fails
        """
        if notice is not None and notice.StatusCode == FAILED_STATUS:
            logger.error(
                "Retrieval job reported failure",
                extra={"job_id": job_id, "status_message": notice.StatusMessage},
            )
            raise DispatchError(f"job {job_id} failed: {notice.StatusMessage or 'no status message'}")

        logger.info(
            "Dispatching retrieval",
            extra={"vault": context.vault_name, "job_id": job_id, "destination": str(context.destination)},
        )
        try:
            await self.executor(context.vault_name, job_id, context.destination, context.options)
        except Exception as e:
            logger.error(
                "Retrieval executor failed",
                extra={"vault": context.vault_name, "job_id": job_id, "error": str(e)},
                exc_info=True,
            )
            raise DispatchError(f"retrieval of job {job_id} failed: {e}") from e

        logger.info("Retrieval completed", extra={"job_id": job_id, "destination": str(context.destination)})
