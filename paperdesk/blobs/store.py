from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from paperdesk.errors import DependencyError


class BlobStore(ABC):
    @abstractmethod
    async def signed_url(self, key: str, expires_in: int) -> str:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        raise NotImplementedError


class InMemoryBlobStore(BlobStore):
    def __init__(self, base_url: str = "memory://blobs") -> None:
        self.base_url = base_url
        self.deleted: list[str] = []

    async def signed_url(self, key: str, expires_in: int) -> str:
        return f"{self.base_url}/{quote(key)}?expires_in={expires_in}"

    async def delete(self, key: str) -> None:
        self.deleted.append(key)


class S3BlobStore(BlobStore):
    def __init__(self, bucket: str, region: str, endpoint_url: Optional[str] = None) -> None:
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self._client: Any = None

    @property
    def client(self) -> Any:
        """Lazy-load boto3 S3 client; credentials come from the usual AWS env vars."""
        if self._client is None:
            client_kwargs = {"service_name": "s3", "region_name": self.region}
            if self.endpoint_url:
                client_kwargs["endpoint_url"] = self.endpoint_url
            self._client = boto3.client(**client_kwargs)
        return self._client

    async def signed_url(self, key: str, expires_in: int) -> str:
        try:
            return await asyncio.to_thread(
                self.client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            raise DependencyError(f"Could not sign download URL: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise DependencyError(f"Could not delete {key}: {e}") from e
