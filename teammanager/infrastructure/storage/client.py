"""
Athlete portrait storage.

Portraits live in a Cloudflare R2 bucket, reached through the S3 API, or
in memory when storage is mocked. Clients load them from presigned URLs;
image bytes never pass through the API.

Portrait lookups are soft: `resolve_portrait_url` falls back to a
placeholder avatar whenever a portrait is missing or storage is
unreachable, and never raises.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from teammanager.core.models import Athlete
from teammanager.core.portraits import (
    DEFAULT_PLACEHOLDER_TEMPLATE,
    is_external_url,
    normalize_photo_url,
    placeholder_url,
)

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a portrait can not be located or signed."""
    pass


@dataclass
class StorageConfig:
    """Configuration for R2/S3-compatible storage."""
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    region: str = "auto"


class StorageClient(Protocol):
    """
    What routes need from portrait storage.

    R2StorageClient and MockStorageClient both satisfy it.
    """

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """Generate temporary download URL. Raises StorageError if missing."""
        ...


class R2StorageClient:
    """
    Portraits in Cloudflare R2, through boto3.

    boto3 calls block; the async signatures only follow StorageClient.
    """

    def __init__(self, config: StorageConfig) -> None:
        import boto3
        from botocore.config import Config

        self._config = config

        # R2 requires v4 signatures and path-style addressing
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Portrait storage on R2",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """
        Signed GET URL for a stored portrait.

        generate_presigned_url signs any key without checking it, so a
        head_object call first makes missing portraits fail here rather
        than in the browser.
        """
        try:
            self._s3_client.head_object(
                Bucket=self._config.bucket_name,
                Key=storage_path,
            )

            return self._s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self._config.bucket_name,
                    'Key': storage_path,
                },
                ExpiresIn=expiry_seconds,
            )

        except Exception as e:
            logger.error(
                "Portrait URL not signed",
                extra={"storage_path": storage_path, "error": str(e)}
            )
            raise StorageError(f"Presigned URL generation failed: {e}") from e


# ---------------------------------------------------------------------------
# In-memory Storage
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    Portrait keys kept in a set, served as mock://storage/ URIs.
    """

    def __init__(self) -> None:
        self._objects: set[str] = set()
        logger.info("Using in-memory portrait storage")

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """Return a mock URL for the portrait."""
        if storage_path not in self._objects:
            raise StorageError(f"Portrait not found: {storage_path}")

        return f"mock://storage/{storage_path}"

    # Helper methods for testing
    def _seed(self, *storage_paths: str) -> None:
        """Mark portraits as stored under the given keys (for test setup)."""
        self._objects.update(storage_paths)


# ---------------------------------------------------------------------------
# Portrait Resolution
# ---------------------------------------------------------------------------

async def resolve_portrait_url(
    storage: StorageClient,
    athlete: Athlete,
    placeholder_template: str = DEFAULT_PLACEHOLDER_TEMPLATE,
) -> str:
    """
    URL to show for an athlete's portrait.

    External URLs are passed through (normalized); anything else is
    treated as a storage key. Missing photos and storage failures both
    resolve to the athlete's placeholder avatar.
    """
    photo = normalize_photo_url(athlete.photo)
    if photo is None:
        return placeholder_url(athlete, placeholder_template)

    if is_external_url(photo):
        return photo

    try:
        return await storage.get_presigned_url(photo)
    except StorageError as e:
        logger.warning(
            "Portrait unavailable, using placeholder",
            extra={"fincode": athlete.fincode, "photo": photo, "error": str(e)}
        )
        return placeholder_url(athlete, placeholder_template)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """R2 client for `config`, or the in-memory client in mock mode."""
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2StorageClient(config)
