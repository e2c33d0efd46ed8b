"""
Object store adapter for DigitalOcean Spaces and other S3-compatible services.
"""
from typing import BinaryIO, Optional, Protocol, Union

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from spacesync.core.config import Settings, settings as default_settings
from spacesync.core.exceptions import ConfigIncompleteError, UploadFailedError
from spacesync.core.logging_config import log_upload
from spacesync.models.enums import UploadFailureReason
from spacesync.services.media_url_service import MediaUrlService

Body = Union[bytes, BinaryIO]

UNAVAILABLE_ERROR_CODES = {"ServiceUnavailable", "SlowDown", "503", "RequestTimeout", "InternalError"}


class BlobStore(Protocol):
    def put(self, object_key: str, content: Body, content_type: str) -> str:
        """Store ``content`` under ``object_key`` and return its public URL.

        Raises:
            UploadFailedError: If the store rejects or fails the upload.
        """
        ...


def build_s3_client(settings: Settings) -> BaseClient:
    """Create a boto3 S3 client for the configured Spaces endpoint.

    Raises:
        ConfigIncompleteError: If a required Spaces setting is missing.
    """
    missing = settings.missing_spaces_settings()
    if missing:
        raise ConfigIncompleteError(missing)

    return boto3.client(
        "s3",
        region_name=settings.spaces_region,
        endpoint_url=f"https://{settings.spaces_endpoint}",
        aws_access_key_id=settings.spaces_access_key,
        aws_secret_access_key=settings.spaces_secret_key,
        config=Config(
            retries={"max_attempts": settings.spaces_max_attempts, "mode": "standard"},
            s3={"addressing_style": "path"},
        ),
    )


class S3BlobStore:
    """BlobStore backed by ``put_object`` with a public-read ACL."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[BaseClient] = None):
        self.settings = settings or default_settings
        missing = self.settings.missing_spaces_settings()
        if missing:
            raise ConfigIncompleteError(missing)
        self.client = client or build_s3_client(self.settings)
        self.urls = MediaUrlService(self.settings)

    def put(self, object_key: str, content: Body, content_type: str) -> str:
        key = MediaUrlService.normalize_key(object_key)
        size = len(content) if isinstance(content, (bytes, bytearray)) else -1
        try:
            self.client.put_object(
                Bucket=self.settings.spaces_bucket,
                Key=key,
                Body=content,
                ACL=self.settings.spaces_acl,
                ContentType=content_type,
            )
        except (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError) as exc:
            log_upload(key, size, success=False, reason=UploadFailureReason.UNAVAILABLE.value)
            raise UploadFailedError(f"Object store unreachable: {exc}", UploadFailureReason.UNAVAILABLE) from exc
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            reason = (
                UploadFailureReason.UNAVAILABLE
                if code in UNAVAILABLE_ERROR_CODES
                else UploadFailureReason.UPLOAD_FAILED
            )
            log_upload(key, size, success=False, reason=reason.value, code=code)
            raise UploadFailedError(f"Upload of {key} rejected: {code or exc}", reason) from exc
        except BotoCoreError as exc:
            log_upload(key, size, success=False, reason=UploadFailureReason.EXCEPTION.value)
            raise UploadFailedError(f"Upload of {key} failed: {exc}", UploadFailureReason.EXCEPTION) from exc

        url = self.urls.remote_url(key)
        log_upload(key, size, success=True, url=url)
        return url
