"""Durable object storage for generated ticket documents"""
from abc import ABC, abstractmethod
from typing import Optional
import asyncio
import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shared.exceptions import StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Storage interface; callers only ever see the returned URL"""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store data under key and return a stable URL for it"""
        ...


class S3ObjectStorage(ObjectStorage):
    """S3-compatible storage (MinIO in development, S3 in production)"""

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = "us-east-1",
        public_base_url: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.public_base_url = public_base_url
        self.client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            # boto3 is blocking; keep the event loop free
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Upload of {key} to bucket {self.bucket} failed: {e}")
            raise StorageError(f"Upload failed for {key}: {e}") from e

        url = self.url_for(key)
        logger.info(f"Stored {key} ({len(data)} bytes) at {url}")
        return url
