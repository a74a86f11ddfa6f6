"""
Notification Channel Provisioner

Creates and destroys the ephemeral SNS topic + SQS queue pair a retrieval
workflow listens on for its job-completion notification.

Setup order:
1. create topic   (GlacierDownload-<hex>)
2. create queue   (same name)
3. resolve the queue ARN
4. subscribe the queue to the topic
5. install a queue policy letting the topic publish into the queue

Usage:
    channel = NotificationChannel(sns_client, sqs_client)
    try:
        resources = await channel.setup()
        ...
    finally:
        await channel.teardown()
"""

import logging
import uuid
from string import Template
from typing import Any, Optional

from coldfetch.errors import ProvisioningError, TeardownError
from coldfetch.utils.aws import call
from coldfetch.utils.config import settings
from coldfetch.utils.schemas import EphemeralChannel

logger = logging.getLogger(__name__)

QUEUE_POLICY_TEMPLATE = Template("""{
  "Version": "2012-10-17",
  "Id": "${queue_arn}/SNSPolicy",
  "Statement": [
    {
      "Sid": "AllowTopicPublish",
      "Effect": "Allow",
      "Principal": {"Service": "sns.amazonaws.com"},
      "Action": "sqs:SendMessage",
      "Resource": "${queue_arn}",
      "Condition": {"ArnEquals": {"aws:SourceArn": "${topic_arn}"}}
    }
  ]
}""")


def render_queue_policy(queue_arn: str, topic_arn: str) -> str:
    """Render the access policy granting `topic_arn` send rights on `queue_arn`."""
    return QUEUE_POLICY_TEMPLATE.substitute(queue_arn=queue_arn, topic_arn=topic_arn)


class NotificationChannel:
    """Owns one ephemeral topic/queue pair for the lifetime of a workflow."""

    def __init__(self, sns_client: Any, sqs_client: Any, name_prefix: Optional[str] = None) -> None:
        """
        Initialize provisioner.

        Args:
            sns_client: boto3 SNS client
            sqs_client: boto3 SQS client
            name_prefix: Resource name prefix, defaults to settings.CHANNEL_NAME_PREFIX
        """
        self.sns = sns_client
        self.sqs = sqs_client
        self.name_prefix = name_prefix if name_prefix is not None else settings.CHANNEL_NAME_PREFIX
        self.name: Optional[str] = None
        self.topic_arn: Optional[str] = None
        self.queue_url: Optional[str] = None
        self.queue_arn: Optional[str] = None

    async def setup(self) -> EphemeralChannel:
        """
        Create, subscribe and authorize the topic/queue pair.

        Returns:
            The provisioned channel

        Raises:
            ProvisioningError: If any step fails. Resources created before the
                failing step remain recorded for teardown.
        """
        self.name = f"{self.name_prefix}{uuid.uuid4().hex}"
        logger.info("Provisioning notification channel", extra={"channel_name": self.name})

        step = "create_topic"
        try:
            response = await call(self.sns, "create_topic", Name=self.name)
            self.topic_arn = response["TopicArn"]

            step = "create_queue"
            response = await call(self.sqs, "create_queue", QueueName=self.name)
            self.queue_url = response["QueueUrl"]

            step = "get_queue_attributes"
            response = await call(
                self.sqs,
                "get_queue_attributes",
                QueueUrl=self.queue_url,
                AttributeNames=["QueueArn"],
            )
            self.queue_arn = response["Attributes"]["QueueArn"]

            step = "subscribe"
            await call(
                self.sns,
                "subscribe",
                TopicArn=self.topic_arn,
                Protocol="sqs",
                Endpoint=self.queue_arn,
            )

            step = "set_queue_attributes"
            await call(
                self.sqs,
                "set_queue_attributes",
                QueueUrl=self.queue_url,
                Attributes={"Policy": render_queue_policy(self.queue_arn, self.topic_arn)},
            )
        except Exception as e:
            logger.error(
                "Notification channel provisioning failed",
                extra={"channel_name": self.name, "step": step, "error": str(e)},
            )
            raise ProvisioningError(f"{step} failed for channel {self.name}: {e}", step=step) from e

        logger.info(
            "Notification channel ready",
            extra={"topic_arn": self.topic_arn, "queue_url": self.queue_url},
        )
        return EphemeralChannel(topic_arn=self.topic_arn, queue_url=self.queue_url, queue_arn=self.queue_arn)

    async def teardown(self) -> None:
        """
        Delete the topic, then the queue.

        Each deletion is attempted even if the other fails. Resources that
        were never created are skipped, and a second call is a no-op.

        Raises:
            TeardownError: If any deletion failed (advisory)
        """
        errors: list[BaseException] = []

        if self.topic_arn is not None:
            try:
                await call(self.sns, "delete_topic", TopicArn=self.topic_arn)
                logger.info("Deleted notification topic", extra={"topic_arn": self.topic_arn})
            except Exception as e:
                logger.warning(
                    "Failed to delete notification topic",
                    extra={"topic_arn": self.topic_arn, "error": str(e)},
                )
                errors.append(e)
            self.topic_arn = None

        if self.queue_url is not None:
            try:
                await call(self.sqs, "delete_queue", QueueUrl=self.queue_url)
                logger.info("Deleted notification queue", extra={"queue_url": self.queue_url})
            except Exception as e:
                logger.warning(
                    "Failed to delete notification queue",
                    extra={"queue_url": self.queue_url, "error": str(e)},
                )
                errors.append(e)
            self.queue_url = None
            self.queue_arn = None

        if errors:
            raise TeardownError(
                f"{len(errors)} ephemeral resource(s) of channel {self.name} could not be deleted",
                errors=errors,
            )
