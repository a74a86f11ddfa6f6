"""
coldfetch - Notification-driven Glacier archive retrieval

Responsibilities:
- Provision an ephemeral SNS topic + SQS queue per retrieval
- Initiate the archive-retrieval job targeting that topic
- Poll the queue for the completion notification over a multi-hour window
- Correlate the notification to the initiated job and download the output
- Tear down the topic and queue on every exit path

Usage:
    from coldfetch import retrieve_archive

    result = await retrieve_archive("photos", archive_id, "/restore/photos.tar")
"""

from coldfetch.errors import (
    DispatchError,
    InitiationError,
    PollingExhaustedError,
    ProvisioningError,
    RetrievalError,
    TeardownError,
)
from coldfetch.orchestrator import RetrievalWorkflow, retrieve_archive
from coldfetch.utils.schemas import RetrievalOptions, WorkflowContext, WorkflowResult, WorkflowState

__version__ = "0.1.0"

__all__ = [
    "DispatchError",
    "InitiationError",
    "PollingExhaustedError",
    "ProvisioningError",
    "RetrievalError",
    "RetrievalOptions",
    "RetrievalWorkflow",
    "TeardownError",
    "WorkflowContext",
    "WorkflowResult",
    "WorkflowState",
    "retrieve_archive",
]
