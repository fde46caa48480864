"""
S3-compatible storage for durable copies of purchased labels.

Works with AWS S3, Cloudflare R2, MinIO and other S3-compatible services.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shipquote.config import EngineConfig

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """Result of a label upload."""
    success: bool
    url: str | None = None
    key: str | None = None
    error: str | None = None
    size_bytes: int | None = None


class LabelStorage:
    """Uploads label files to the configured bucket."""

    def __init__(self, config: EngineConfig):
        self._client = None
        self._bucket = config.label_storage_bucket
        self._region = config.s3_region
        self._endpoint = config.s3_endpoint
        self._access_key = config.s3_access_key
        self._secret_key = config.s3_secret_key

    def is_configured(self) -> bool:
        return bool(self._bucket)

    @property
    def client(self):
        """Lazy-load S3 client."""
        if self._client is None:
            client_kwargs = {
                "service_name": "s3",
                "region_name": self._region,
                "config": Config(
                    signature_version="s3v4",
                    retries={"max_attempts": 3, "mode": "standard"},
                ),
            }
            if self._access_key and self._secret_key:
                client_kwargs["aws_access_key_id"] = self._access_key
                client_kwargs["aws_secret_access_key"] = self._secret_key
            if self._endpoint:
                client_kwargs["endpoint_url"] = self._endpoint
            self._client = boto3.client(**client_kwargs)
        return self._client

    def public_url(self, key: str) -> str:
        if self._endpoint:
            return f"{self._endpoint.rstrip('/')}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    def label_key(self, order_ref: str, shipment_id: str, extension: str = "pdf") -> str:
        safe_ref = "".join(c for c in order_ref if c.isalnum() or c in "-_") or "order"
        day = datetime.now(timezone.utc).strftime("%Y%m%d")
        return f"labels/{day}/{safe_ref}_{shipment_id}.{extension}"

    def upload_label(
        self,
        order_ref: str,
        shipment_id: str,
        content: bytes,
        content_type: str = "application/pdf",
    ) -> UploadResult:
        if not self.is_configured():
            return UploadResult(success=False, error="Label storage bucket not configured")

        extension = "png" if content_type == "image/png" else "pdf"
        key = self.label_key(order_ref, shipment_id, extension)
        try:
            self.client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning("Label upload to %s failed: %s", key, e)
            return UploadResult(success=False, key=key, error=str(e))

        return UploadResult(
            success=True,
            url=self.public_url(key),
            key=key,
            size_bytes=len(content),
        )
