"""
Pydantic Schemas - Workflow Data Models

Defines the data passed between the retrieval workflow phases:
- Retrieval options and the immutable workflow context
- The ephemeral notification channel
- Queue messages and the notification payloads they carry
- The terminal workflow result

Usage:
    from coldfetch.utils.schemas import RetrievalOptions, WorkflowContext

    context = WorkflowContext(
        archive_id="abc",
        vault_name="photos",
        destination="/data/photos.tar",
        options=RetrievalOptions.from_settings(),
    )
"""

from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from coldfetch.errors import RetrievalError
from coldfetch.utils.config import Settings, settings as default_settings


class RetrievalOptions(BaseModel):
    """Tunables for a single retrieval workflow."""

    model_config = ConfigDict(frozen=True)

    polling_interval_minutes: float = Field(default=1.0, gt=0, description="Sleep between empty polls")
    account_id: str = Field(default="-", description="Glacier account id, '-' for the caller's account")
    max_fetch_retries: int = Field(default=5, ge=0, description="Consecutive fetch errors tolerated")
    fetch_retry_cooldown_seconds: float = Field(default=60.0, ge=0, description="Sleep after a fetch error")
    strict_job_match: bool = Field(default=True, description="Skip notifications for other jobs")
    tier: Optional[Literal["Expedited", "Standard", "Bulk"]] = Field(default=None)
    description: Optional[str] = Field(default=None, max_length=1024)
    download_chunk_size: int = Field(default=1024 * 1024, gt=0)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides: Any) -> "RetrievalOptions":
        """Build options from application settings, with keyword overrides."""
        settings = settings or default_settings
        values: dict[str, Any] = {
            "polling_interval_minutes": settings.POLLING_INTERVAL_MINUTES,
            "account_id": settings.GLACIER_ACCOUNT_ID,
            "max_fetch_retries": settings.FETCH_MAX_RETRIES,
            "fetch_retry_cooldown_seconds": settings.FETCH_RETRY_COOLDOWN_SECONDS,
            "strict_job_match": settings.STRICT_JOB_MATCH,
            "tier": settings.RETRIEVAL_TIER,
            "download_chunk_size": settings.DOWNLOAD_CHUNK_SIZE,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class WorkflowContext(BaseModel):
    """Everything one workflow needs to know about the archive it retrieves."""

    model_config = ConfigDict(frozen=True)

    archive_id: str = Field(..., min_length=1)
    vault_name: str = Field(..., min_length=1)
    destination: Path
    options: RetrievalOptions = Field(default_factory=RetrievalOptions)


class EphemeralChannel(BaseModel):
    """Topic/queue pair created for exactly one workflow."""

    model_config = ConfigDict(frozen=True)

    topic_arn: str
    queue_url: str
    queue_arn: str


class NotificationMessage(BaseModel):
    """A single message received from the notification queue."""

    model_config = ConfigDict(frozen=True)

    body: str
    receipt_handle: str
    message_id: Optional[str] = None

    @classmethod
    def from_sqs(cls, raw: dict[str, Any]) -> "NotificationMessage":
        return cls(
            body=raw.get("Body", ""),
            receipt_handle=raw["ReceiptHandle"],
            message_id=raw.get("MessageId"),
        )


class SnsEnvelope(BaseModel):
    """SNS notification wrapper as delivered into an SQS queue.

    {
        "Type": "Notification",
        "MessageId": "...",
        "TopicArn": "arn:aws:sns:...",
        "Message": "{\"JobId\": \"...\", ...}"
    }
    """

    model_config = ConfigDict(extra="ignore")

    Type: str
    Message: str
    MessageId: Optional[str] = None
    TopicArn: Optional[str] = None


class JobCompletionNotice(BaseModel):
    """Glacier job completion notification."""

    model_config = ConfigDict(extra="ignore")

    JobId: str = Field(..., min_length=1)
    Action: Optional[str] = None
    ArchiveId: Optional[str] = None
    VaultARN: Optional[str] = None
    Completed: Optional[bool] = None
    StatusCode: Optional[str] = None
    StatusMessage: Optional[str] = None


class WorkflowState(str, Enum):
    IDLE = "idle"
    PROVISIONING = "provisioning"
    INITIATING = "initiating"
    POLLING = "polling"
    CORRELATING = "correlating"
    DISPATCHING = "dispatching"
    TEARING_DOWN = "tearing_down"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkflowResult(BaseModel):
    """Terminal outcome of a retrieval workflow.

    `error` is the first fatal error. `teardown_error` is advisory and never
    replaces `error`; when teardown is the only failure it is reported as
    `error` as well.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: WorkflowState
    job_id: Optional[str] = None
    error: Optional[RetrievalError] = None
    teardown_error: Optional[RetrievalError] = None

    @property
    def ok(self) -> bool:
        return self.state == WorkflowState.COMPLETED

    def raise_for_error(self) -> None:
        """Raise the primary error if the workflow failed."""
        if self.error is not None:
            raise self.error
