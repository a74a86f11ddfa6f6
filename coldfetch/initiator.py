"""
Job Initiator

Submits the archive-retrieval job whose completion is announced on the
workflow's ephemeral topic. No retry happens here: a failed submission is
surfaced to the orchestrator immediately.
"""

import logging
from typing import Any

from coldfetch.errors import InitiationError
from coldfetch.utils.aws import call
from coldfetch.utils.schemas import RetrievalOptions

logger = logging.getLogger(__name__)

JOB_TYPE = "archive-retrieval"


class JobInitiator:
    """Starts Glacier archive-retrieval jobs."""

    def __init__(self, glacier_client: Any, vault_name: str, options: RetrievalOptions) -> None:
        self.glacier = glacier_client
        self.vault_name = vault_name
        self.options = options

    def build_job_parameters(self, archive_id: str, topic_arn: str) -> dict[str, Any]:
        params: dict[str, Any] = {
            "Type": JOB_TYPE,
            "ArchiveId": archive_id,
            "SNSTopic": topic_arn,
        }
        if self.options.tier:
            params["Tier"] = self.options.tier
        if self.options.description:
            params["Description"] = self.options.description
        return params

    async def initiate(self, archive_id: str, topic_arn: str) -> str:
        """
        Submit a retrieval job for `archive_id` that notifies `topic_arn`.

        Args:
            archive_id: Archive to retrieve
            topic_arn: Completion notification target

        Returns:
            The job id assigned by the service

        Raises:
            InitiationError: If the submission fails
        """
        try:
            response = await call(
                self.glacier,
                "initiate_job",
                accountId=self.options.account_id,
                vaultName=self.vault_name,
                jobParameters=self.build_job_parameters(archive_id, topic_arn),
            )
            job_id = response["jobId"]
        except Exception as e:
            logger.error(
                "Failed to initiate retrieval job",
                extra={"vault": self.vault_name, "archive_id": archive_id, "error": str(e)},
            )
            raise InitiationError(f"could not initiate retrieval of archive {archive_id}: {e}") from e

        logger.info(
            "Retrieval job initiated",
            extra={"vault": self.vault_name, "archive_id": archive_id, "job_id": job_id},
        )
        return job_id
