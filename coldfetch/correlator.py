"""
Message Correlator

Decodes a job id out of a queue message and decides whether the message
belongs to this workflow's job. A message that cannot be decoded, or that
names another job while strict matching is on, is skipped: the caller must
neither delete nor dispatch it.
"""

import logging
from typing import Optional

import orjson
from pydantic import ValidationError

from coldfetch.utils.schemas import JobCompletionNotice, NotificationMessage, SnsEnvelope

logger = logging.getLogger(__name__)


def decode_notice(body: str) -> Optional[JobCompletionNotice]:
    """Parse a queue message body into a job completion notice.

    Accepts either an SNS envelope whose `Message` holds the notice, or a raw
    notice (raw message delivery). Returns None if the body is not a notice.
    """
    try:
        payload = orjson.loads(body)
        if isinstance(payload, dict) and "Message" in payload and "Type" in payload:
            envelope = SnsEnvelope(**payload)
            payload = orjson.loads(envelope.Message)
        if not isinstance(payload, dict):
            return None
        return JobCompletionNotice(**payload)
    except (orjson.JSONDecodeError, ValidationError, TypeError) as e:
        logger.debug("Message body is not a job notification", extra={"error": str(e)})
        return None


def decode_job_id(body: str) -> Optional[str]:
    """Extract the job id from a message body, or None."""
    notice = decode_notice(body)
    return notice.JobId if notice else None


class MessageCorrelator:
    """Matches inbound notifications to the job a workflow initiated."""

    def __init__(self, job_id: str, strict: bool = True) -> None:
        """
        Args:
            job_id: Job initiated by this workflow
            strict: If True, notifications for any other job are skipped
        """
        self.job_id = job_id
        self.strict = strict

    def correlate(self, message: NotificationMessage) -> Optional[str]:
        """
        Return the job id carried by `message`, or None to skip it.
        """
        notice = self.correlate_notice(message)
        return notice.JobId if notice else None

    def correlate_notice(self, message: NotificationMessage) -> Optional[JobCompletionNotice]:
        """Return the decoded notice if `message` belongs to this job, else None."""
        notice = decode_notice(message.body)
        if notice is None:
            logger.warning(
                "Skipping undecodable notification",
                extra={"message_id": message.message_id},
            )
            return None

        if self.strict and notice.JobId != self.job_id:
            logger.warning(
                "Skipping notification for another job",
                extra={
                    "message_id": message.message_id,
                    "expected_job_id": self.job_id,
                    "received_job_id": notice.JobId,
                },
            )
            return None

        logger.info(
            "Notification correlated",
            extra={
                "message_id": message.message_id,
                "job_id": notice.JobId,
                "status_code": notice.StatusCode,
            },
        )
        return notice
