"""
AWS client wrapper for the Glacier, SNS and SQS services used by a workflow.

boto3 clients are blocking; `call` runs a client method on a worker thread so
every remote call is an asyncio suspension point and can be cancelled.
"""

import asyncio
import logging
from typing import Any, Optional

import boto3
from botocore.config import Config

from coldfetch.utils.config import settings

logger = logging.getLogger(__name__)


async def call(client: Any, operation: str, **kwargs: Any) -> Any:
    """Invoke a blocking boto3 client operation without blocking the event loop.

    Args:
        client: boto3 (or compatible) client
        operation: Client method name, e.g. "receive_message"
        **kwargs: Request parameters

    Returns:
        The operation's response
    """
    method = getattr(client, operation)
    return await asyncio.to_thread(method, **kwargs)


class AwsClients:
    """Lazily created boto3 clients sharing one session and retry config."""

    def __init__(
        self,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        profile: Optional[str] = None,
    ) -> None:
        """Initialize client holder.

        Args:
            region: AWS region, defaults to settings.AWS_REGION
            endpoint_url: Override endpoint (LocalStack etc.), defaults to settings.AWS_ENDPOINT_URL
            profile: Named credentials profile, defaults to settings.AWS_PROFILE
        """
        self.region = region or settings.AWS_REGION
        self.endpoint_url = endpoint_url or settings.AWS_ENDPOINT_URL
        self.profile = profile or settings.AWS_PROFILE
        self._session: Optional[boto3.session.Session] = None
        self._clients: dict[str, Any] = {}

    def _client(self, service: str) -> Any:
        if service not in self._clients:
            if self._session is None:
                self._session = boto3.session.Session(profile_name=self.profile, region_name=self.region)

            client_kwargs: dict[str, Any] = {
                "service_name": service,
                "config": Config(retries={"max_attempts": 3, "mode": "standard"}),
            }
            if self.endpoint_url:
                client_kwargs["endpoint_url"] = self.endpoint_url

            self._clients[service] = self._session.client(**client_kwargs)
            logger.debug(
                "AWS client created",
                extra={"service": service, "region": self.region, "endpoint": self.endpoint_url},
            )
        return self._clients[service]

    @property
    def glacier(self) -> Any:
        return self._client("glacier")

    @property
    def sns(self) -> Any:
        return self._client("sns")

    @property
    def sqs(self) -> Any:
        return self._client("sqs")

    def close(self) -> None:
        """Close underlying HTTP connection pools."""
        for client in self._clients.values():
            client.close()
        self._clients.clear()
