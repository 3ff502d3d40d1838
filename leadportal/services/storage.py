"""Object storage for lead documents.

``DocumentStore`` is the interface the document service depends on; the
S3 implementation is built once at startup and handed to routes through
``get_document_store``.
"""
import logging
import os
import secrets
import time
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import Request

from leadportal.core.config import settings
from leadportal.core.errors import StorageError

logger = logging.getLogger(__name__)


def generate_storage_key(lead_id: int, original_name: str) -> str:
    """Randomized key namespaced under the lead; never derived from the client's path."""
    _, ext = os.path.splitext(os.path.basename(original_name or ""))
    ext = "".join(ch for ch in ext.lower() if ch.isalnum() or ch == ".")[:10]
    return f"leads/{lead_id}/{int(time.time() * 1000)}-{secrets.token_hex(16)}{ext}"


class DocumentStore:
    def put(self, key: str, content: bytes, content_type: str, original_name: str) -> None:
        raise NotImplementedError

    def get(self, key: str) -> bytes:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def signed_url(self, key: str, expires_in: int) -> str:
        raise NotImplementedError


class S3DocumentStore(DocumentStore):
    def __init__(
        self,
        bucket: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        self.bucket = bucket
        kwargs = {"region_name": region}
        if access_key_id and secret_access_key:
            kwargs["aws_access_key_id"] = access_key_id
            kwargs["aws_secret_access_key"] = secret_access_key
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("s3", **kwargs)

    @classmethod
    def from_settings(cls) -> "S3DocumentStore":
        return cls(
            bucket=settings.AWS_S3_BUCKET,
            region=settings.AWS_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            endpoint_url=settings.AWS_S3_ENDPOINT_URL,
        )

    def put(self, key: str, content: bytes, content_type: str, original_name: str) -> None:
        # S3 user metadata must be ASCII
        safe_name = original_name.encode("ascii", "ignore").decode().replace('"', "")
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
                ContentDisposition=f'inline; filename="{safe_name}"',
                Metadata={"original-name": safe_name},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error uploading {key} to S3: {e}")
            raise StorageError("Failed to store document") from e

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error reading {key} from S3: {e}")
            raise StorageError("Failed to read document") from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error deleting {key} from S3: {e}")
            raise StorageError("Failed to delete document") from e

    def signed_url(self, key: str, expires_in: int) -> str:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error generating signed URL for {key}: {e}")
            raise StorageError("Failed to generate document URL") from e


def get_document_store(request: Request) -> DocumentStore:
    store = getattr(request.app.state, "document_store", None)
    if store is None:
        raise StorageError("Document storage is not configured")
    return store
