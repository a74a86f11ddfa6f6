"""
Workflow Orchestrator

Sequences one archive retrieval:

    idle -> provisioning -> initiating -> polling <-> correlating
         -> dispatching -> tearing_down -> completed | failed

The ephemeral channel is torn down exactly once on every path that reached
provisioning, including failures and task cancellation. The first fatal
error becomes the result's error; teardown failures are attached as an
advisory and only become the error when nothing else failed.

Usage:
    result = await retrieve_archive("photos", archive_id, "/data/photos.tar")
    result.raise_for_error()
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

from coldfetch.channel import NotificationChannel
from coldfetch.correlator import MessageCorrelator
from coldfetch.dispatcher import RetrievalDispatcher
from coldfetch.errors import RetrievalError, TeardownError
from coldfetch.executor import JobOutputDownloader, RetrievalExecutor
from coldfetch.initiator import JobInitiator
from coldfetch.poller import CompletionPoller, SleepFn
from coldfetch.utils.aws import AwsClients, call
from coldfetch.utils.schemas import (
    EphemeralChannel,
    NotificationMessage,
    RetrievalOptions,
    WorkflowContext,
    WorkflowResult,
    WorkflowState,
)

logger = logging.getLogger(__name__)


class RetrievalWorkflow:
    """Runs a single archive-retrieval job from initiation to download."""

    def __init__(
        self,
        context: WorkflowContext,
        glacier_client: Any,
        sns_client: Any,
        sqs_client: Any,
        executor: Optional[RetrievalExecutor] = None,
        sleep: Optional[SleepFn] = None,
        channel_name_prefix: Optional[str] = None,
    ) -> None:
        """
        Initialize workflow.

        Args:
            context: Archive, vault, destination and options
            glacier_client: boto3 Glacier client
            sns_client: boto3 SNS client
            sqs_client: boto3 SQS client
            executor: Retrieval executor, defaults to JobOutputDownloader
            sleep: Awaitable sleep used while polling, defaults to asyncio.sleep
            channel_name_prefix: Topic/queue name prefix override
        """
        self.context = context
        self.glacier = glacier_client
        self.sns = sns_client
        self.sqs = sqs_client
        self.dispatcher = RetrievalDispatcher(executor or JobOutputDownloader(glacier_client))
        self.channel = NotificationChannel(sns_client, sqs_client, name_prefix=channel_name_prefix)
        self._sleep = sleep
        self.state = WorkflowState.IDLE
        self.job_id: Optional[str] = None

    def _transition(self, state: WorkflowState) -> None:
        logger.debug(
            "Workflow state change",
            extra={"archive_id": self.context.archive_id, "from_state": self.state.value, "to_state": state.value},
        )
        self.state = state

    async def run(self) -> WorkflowResult:
        """
        Execute the workflow.

        Returns:
            Completed or failed result. Only RetrievalError subclasses are
            captured; cancellation propagates after teardown.
        """
        if self.state != WorkflowState.IDLE:
            raise RuntimeError("a RetrievalWorkflow instance can only run once")

        logger.info(
            "Starting archive retrieval",
            extra={"vault": self.context.vault_name, "archive_id": self.context.archive_id},
        )

        error: Optional[RetrievalError] = None
        teardown_error: Optional[TeardownError] = None

        self._transition(WorkflowState.PROVISIONING)
        try:
            resources = await self.channel.setup()

            self._transition(WorkflowState.INITIATING)
            initiator = JobInitiator(self.glacier, self.context.vault_name, self.context.options)
            self.job_id = await initiator.initiate(self.context.archive_id, resources.topic_arn)

            await self._await_and_dispatch(self.job_id, resources)
        except RetrievalError as e:
            error = e
        finally:
            self._transition(WorkflowState.TEARING_DOWN)
            try:
                await self.channel.teardown()
            except TeardownError as e:
                teardown_error = e

        if teardown_error is not None and error is None:
            error = teardown_error

        if error is None:
            self._transition(WorkflowState.COMPLETED)
            logger.info(
                "Archive retrieval completed",
                extra={"archive_id": self.context.archive_id, "job_id": self.job_id},
            )
        else:
            self._transition(WorkflowState.FAILED)
            logger.error(
                "Archive retrieval failed",
                extra={
                    "archive_id": self.context.archive_id,
                    "job_id": self.job_id,
                    "phase": error.phase,
                    "error": str(error),
                    "teardown_error": str(teardown_error) if teardown_error else None,
                },
            )

        return WorkflowResult(
            state=self.state,
            job_id=self.job_id,
            error=error,
            teardown_error=teardown_error,
        )

    async def _await_and_dispatch(self, job_id: str, resources: EphemeralChannel) -> None:
        options = self.context.options
        poller = CompletionPoller(self.sqs, resources.queue_url, options, sleep=self._sleep)
        correlator = MessageCorrelator(job_id, strict=options.strict_job_match)

        while True:
            self._transition(WorkflowState.POLLING)
            message = await poller.next()

            self._transition(WorkflowState.CORRELATING)
            notice = correlator.correlate_notice(message)
            if notice is None:
                continue

            self._transition(WorkflowState.DISPATCHING)
            await self.dispatcher.dispatch(job_id, self.context, notice=notice)
            await self._acknowledge(resources.queue_url, message)
            return

    async def _acknowledge(self, queue_url: str, message: NotificationMessage) -> None:
        """
        Delete a consumed notification after successful dispatch.

        A failed delete is logged rather than raised: the archive is already
        retrieved, and teardown deletes the whole queue right after, so the
        message cannot be redelivered to anyone.
        """
        try:
            await call(self.sqs, "delete_message", QueueUrl=queue_url, ReceiptHandle=message.receipt_handle)
        except Exception as e:
            logger.warning(
                "Failed to delete consumed notification",
                extra={"queue_url": queue_url, "message_id": message.message_id, "error": str(e)},
            )


async def retrieve_archive(
    vault_name: str,
    archive_id: str,
    destination: Union[str, Path],
    options: Optional[RetrievalOptions] = None,
    clients: Optional[AwsClients] = None,
    executor: Optional[RetrievalExecutor] = None,
) -> WorkflowResult:
    """
    Retrieve one archive into `destination` using configured AWS clients.

    Args:
        vault_name: Vault holding the archive
        archive_id: Archive to retrieve
        destination: Local file path for the archive bytes
        options: Workflow options, defaults to RetrievalOptions.from_settings()
        clients: AWS clients, created from settings if omitted
        executor: Retrieval executor, defaults to JobOutputDownloader

    Returns:
        The workflow result
    """
    context = WorkflowContext(
        archive_id=archive_id,
        vault_name=vault_name,
        destination=Path(destination),
        options=options or RetrievalOptions.from_settings(),
    )
    owned = clients is None
    clients = clients or AwsClients()

    try:
        workflow = RetrievalWorkflow(
            context,
            glacier_client=clients.glacier,
            sns_client=clients.sns,
            sqs_client=clients.sqs,
            executor=executor,
        )
        return await workflow.run()
    finally:
        if owned:
            clients.close()
