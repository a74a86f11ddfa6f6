"""
Retrieval Executor

The retrieval executor transfers a completed job's output to local disk.
Any async callable matching RetrievalExecutor can be plugged into the
workflow; JobOutputDownloader is the default, which streams the whole job
output into a temporary file, verifies the SHA-256 tree hash Glacier returns,
and moves the file into place.
"""

import asyncio
import hashlib
import logging
import os
import threading
from pathlib import Path
from typing import Any, BinaryIO, Optional, Protocol

from coldfetch.utils.schemas import RetrievalOptions

logger = logging.getLogger(__name__)

TREE_HASH_CHUNK = 1024 * 1024


class RetrievalExecutor(Protocol):
    async def __call__(
        self,
        vault_name: str,
        job_id: str,
        destination: Path,
        options: RetrievalOptions,
    ) -> None: ...


class ChecksumMismatchError(Exception):
    """Downloaded bytes do not match the service-reported tree hash."""


class DownloadCancelledError(Exception):
    """The awaiting task was cancelled while the worker thread was downloading."""


def tree_hash(stream: BinaryIO) -> str:
    """Compute the Glacier SHA-256 tree hash of a binary stream.

    The stream is hashed in 1 MiB leaves, then adjacent digests are hashed
    pairwise until one digest remains. An odd digest is promoted unchanged.
    """
    level = []
    while True:
        chunk = stream.read(TREE_HASH_CHUNK)
        if not chunk:
            break
        level.append(hashlib.sha256(chunk).digest())

    if not level:
        return hashlib.sha256(b"").hexdigest()

    while len(level) > 1:
        paired = []
        for i in range(0, len(level) - 1, 2):
            paired.append(hashlib.sha256(level[i] + level[i + 1]).digest())
        if len(level) % 2:
            paired.append(level[-1])
        level = paired

    return level[0].hex()


class JobOutputDownloader:
    """Default executor: download the full output of a completed job."""

    def __init__(self, glacier_client: Any) -> None:
        self.glacier = glacier_client

    def _download(
        self,
        vault_name: str,
        job_id: str,
        destination: Path,
        options: RetrievalOptions,
        cancelled: threading.Event,
    ) -> int:
        response = self.glacier.get_job_output(
            accountId=options.account_id,
            vaultName=vault_name,
            jobId=job_id,
        )
        body = response["body"]
        expected: Optional[str] = response.get("checksum")

        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        written = 0

        try:
            with open(partial, "wb") as f:
                while True:
                    if cancelled.is_set():
                        raise DownloadCancelledError(f"download of job {job_id} cancelled")
                    chunk = body.read(options.download_chunk_size)
                    if not chunk:
                        break
                    f.write(chunk)
                    written += len(chunk)

            if expected:
                with open(partial, "rb") as f:
                    actual = tree_hash(f)
                if actual != expected:
                    raise ChecksumMismatchError(
                        f"tree hash mismatch for job {job_id}: expected {expected}, got {actual}"
                    )

            if cancelled.is_set():
                raise DownloadCancelledError(f"download of job {job_id} cancelled")
            os.replace(partial, destination)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        finally:
            body.close()

        return written

    async def __call__(
        self,
        vault_name: str,
        job_id: str,
        destination: Path,
        options: RetrievalOptions,
    ) -> None:
        # The worker thread cannot be interrupted, so it polls this flag between chunks
        cancelled = threading.Event()
        try:
            written = await asyncio.to_thread(
                self._download, vault_name, job_id, Path(destination), options, cancelled
            )
        except asyncio.CancelledError:
            cancelled.set()
            logger.warning(
                "Job output download cancelled",
                extra={"job_id": job_id, "destination": str(destination)},
            )
            raise

        logger.info(
            "Job output downloaded",
            extra={"job_id": job_id, "destination": str(destination), "bytes": written},
        )
