"""Shared fixtures: in-memory AWS fakes recording calls into one ordered log."""

import io
from pathlib import Path
from typing import Any, Optional

import orjson
import pytest
from botocore.exceptions import ClientError

from coldfetch.utils.schemas import RetrievalOptions, WorkflowContext

ACCOUNT = "123456789012"
REGION = "us-east-1"


def client_error(operation: str, code: str = "ServiceUnavailable") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{operation} failed"}}, operation)


def job_notification(job_id: str, status: str = "Succeeded") -> str:
    """Build an SNS-over-SQS message body carrying a Glacier job notification."""
    notice = {
        "Action": "ArchiveRetrieval",
        "ArchiveId": "archive-1",
        "Completed": True,
        "JobId": job_id,
        "StatusCode": status,
        "StatusMessage": status,
        "VaultARN": f"arn:aws:glacier:{REGION}:{ACCOUNT}:vaults/photos",
    }
    envelope = {
        "Type": "Notification",
        "MessageId": "sns-msg-1",
        "TopicArn": f"arn:aws:sns:{REGION}:{ACCOUNT}:GlacierDownload-x",
        "Message": orjson.dumps(notice).decode(),
    }
    return orjson.dumps(envelope).decode()


def sqs_message(body: str, receipt: str = "receipt-1", message_id: str = "msg-1") -> dict[str, Any]:
    return {"MessageId": message_id, "ReceiptHandle": receipt, "Body": body}


class CallLog(list):
    def ops(self) -> list[str]:
        return [op for op, _ in self]

    def count_of(self, op: str) -> int:
        return sum(1 for name, _ in self if name == op)


class FakeService:
    """Base fake: records calls and raises configured failures."""

    def __init__(self, log: CallLog) -> None:
        self.log = log
        self.failures: dict[str, BaseException] = {}

    def _record(self, op: str, **kwargs: Any) -> None:
        self.log.append((op, kwargs))
        if op in self.failures:
            raise self.failures[op]

    def close(self) -> None:
        pass


class FakeSns(FakeService):
    def create_topic(self, Name: str) -> dict[str, Any]:
        self._record("create_topic", Name=Name)
        return {"TopicArn": f"arn:aws:sns:{REGION}:{ACCOUNT}:{Name}"}

    def subscribe(self, **kwargs: Any) -> dict[str, Any]:
        self._record("subscribe", **kwargs)
        return {"SubscriptionArn": kwargs["TopicArn"] + ":sub"}

    def delete_topic(self, TopicArn: str) -> dict[str, Any]:
        self._record("delete_topic", TopicArn=TopicArn)
        return {}


class FakeSqs(FakeService):
    def __init__(self, log: CallLog) -> None:
        super().__init__(log)
        # Each entry is a list of messages or an exception to raise
        self.receive_script: list[Any] = []

    def create_queue(self, QueueName: str) -> dict[str, Any]:
        self._record("create_queue", QueueName=QueueName)
        return {"QueueUrl": f"https://sqs.{REGION}.amazonaws.com/{ACCOUNT}/{QueueName}"}

    def get_queue_attributes(self, QueueUrl: str, AttributeNames: list[str]) -> dict[str, Any]:
        self._record("get_queue_attributes", QueueUrl=QueueUrl, AttributeNames=AttributeNames)
        name = QueueUrl.rsplit("/", 1)[-1]
        return {"Attributes": {"QueueArn": f"arn:aws:sqs:{REGION}:{ACCOUNT}:{name}"}}

    def set_queue_attributes(self, QueueUrl: str, Attributes: dict[str, str]) -> dict[str, Any]:
        self._record("set_queue_attributes", QueueUrl=QueueUrl, Attributes=Attributes)
        return {}

    def receive_message(self, QueueUrl: str, MaxNumberOfMessages: int) -> dict[str, Any]:
        self._record("receive_message", QueueUrl=QueueUrl, MaxNumberOfMessages=MaxNumberOfMessages)
        step = self.receive_script.pop(0) if self.receive_script else []
        if isinstance(step, BaseException):
            raise step
        return {"Messages": step} if step else {}

    def delete_message(self, QueueUrl: str, ReceiptHandle: str) -> dict[str, Any]:
        self._record("delete_message", QueueUrl=QueueUrl, ReceiptHandle=ReceiptHandle)
        return {}

    def delete_queue(self, QueueUrl: str) -> dict[str, Any]:
        self._record("delete_queue", QueueUrl=QueueUrl)
        return {}


class FakeGlacier(FakeService):
    def __init__(self, log: CallLog, job_id: str = "job-1", output: bytes = b"archive bytes") -> None:
        super().__init__(log)
        self.job_id = job_id
        self.output = output
        self.checksum: Optional[str] = None

    def initiate_job(self, **kwargs: Any) -> dict[str, Any]:
        self._record("initiate_job", **kwargs)
        return {"jobId": self.job_id, "location": f"/{ACCOUNT}/vaults/photos/jobs/{self.job_id}"}

    def get_job_output(self, **kwargs: Any) -> dict[str, Any]:
        self._record("get_job_output", **kwargs)
        response: dict[str, Any] = {"body": io.BytesIO(self.output), "status": 200}
        if self.checksum is not None:
            response["checksum"] = self.checksum
        return response


class RecordingExecutor:
    """Retrieval executor double that logs its invocation into the call log."""

    def __init__(self, log: CallLog, error: Optional[BaseException] = None) -> None:
        self.log = log
        self.error = error
        self.calls: list[tuple[str, str, Path]] = []

    async def __call__(self, vault_name: str, job_id: str, destination: Path, options: RetrievalOptions) -> None:
        self.log.append(("execute", {"vault_name": vault_name, "job_id": job_id}))
        self.calls.append((vault_name, job_id, destination))
        if self.error is not None:
            raise self.error


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def call_log() -> CallLog:
    return CallLog()


@pytest.fixture
def sns(call_log: CallLog) -> FakeSns:
    return FakeSns(call_log)


@pytest.fixture
def sqs(call_log: CallLog) -> FakeSqs:
    return FakeSqs(call_log)


@pytest.fixture
def glacier(call_log: CallLog) -> FakeGlacier:
    return FakeGlacier(call_log)


@pytest.fixture
def executor(call_log: CallLog) -> RecordingExecutor:
    return RecordingExecutor(call_log)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def options() -> RetrievalOptions:
    return RetrievalOptions(
        polling_interval_minutes=15,
        account_id="-",
        max_fetch_retries=3,
        fetch_retry_cooldown_seconds=60,
    )


@pytest.fixture
def context(tmp_path: Path, options: RetrievalOptions) -> WorkflowContext:
    return WorkflowContext(
        archive_id="archive-1",
        vault_name="photos",
        destination=tmp_path / "restore" / "archive.bin",
        options=options,
    )
