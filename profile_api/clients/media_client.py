"""
MinIO (S3-compatible) client for profile photos.

Stores image bytes as objects under profiles/{user_id}/{uuid}.{ext} and hands
back a public URL plus the object key. The key is kept on the profile so the
object can be removed when the photo is replaced or the account deleted;
the user id in the key is what lets the API accept a key only from its owner.
"""
import logging
import uuid
from io import BytesIO
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from profile_api.config import settings

logger = logging.getLogger(__name__)


MEDIA_FOLDER = "profiles"


def owner_prefix(user_id: str) -> str:
    return f"{MEDIA_FOLDER}/{user_id}/"


def is_owned_key(key: str, user_id: str) -> bool:
    """True when the key was minted for this user's uploads."""
    prefix = owner_prefix(user_id)
    return key.startswith(prefix) and len(key) > len(prefix) and ".." not in key


class MediaStore:
    def __init__(self, bucket: Optional[str] = None):
        self.bucket = bucket or settings.minio_bucket
        self._s3 = None

    @property
    def endpoint_url(self) -> str:
        scheme = "https" if settings.minio_use_ssl else "http"
        return f"{scheme}://{settings.minio_endpoint}"

    def init(self) -> None:
        """Create the S3 client and ensure the media bucket exists."""
        self._s3 = boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=settings.minio_access_key,
            aws_secret_access_key=settings.minio_secret_key,
            config=Config(signature_version="s3v4"),
            region_name="us-east-1",
        )

        # Create bucket if missing
        existing = [b["Name"] for b in self._s3.list_buckets().get("Buckets", [])]
        if self.bucket not in existing:
            self._s3.create_bucket(Bucket=self.bucket)
            logger.info("Created MinIO bucket '%s'", self.bucket)
        else:
            logger.info("MinIO bucket '%s' already exists", self.bucket)

    def get_s3(self):
        if self._s3 is None:
            raise RuntimeError("MinIO client not initialised — call init() at startup")
        return self._s3

    def public_url(self, key: str) -> str:
        base = settings.media_public_base_url or f"{self.endpoint_url}/{self.bucket}"
        return f"{base.rstrip('/')}/{key}"

    @staticmethod
    def new_key(filename: str, owner_id: str) -> str:
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
        return f"{owner_prefix(owner_id)}{uuid.uuid4()}.{ext}"

    def upload(self, data: bytes, filename: str, content_type: str, owner_id: str) -> tuple[str, str]:
        """Upload bytes and return (public_url, key)."""
        key = self.new_key(filename, owner_id)
        self.get_s3().put_object(
            Bucket=self.bucket,
            Key=key,
            Body=BytesIO(data),
            ContentType=content_type,
        )
        logger.debug("Uploaded media to MinIO: %s", key)
        return self.public_url(key), key

    def presigned_upload(self, filename: str, content_type: str, owner_id: str) -> tuple[str, str, str]:
        """Pre-signed PUT URL for a direct browser upload: (upload_url, key, public_url)."""
        key = self.new_key(filename, owner_id)
        upload_url = self.get_s3().generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=settings.media_presign_expiry,
        )
        return upload_url, key, self.public_url(key)

    def delete(self, key: str) -> bool:
        """Remove an object. Failures are logged, never raised."""
        if not key:
            return False
        try:
            self.get_s3().delete_object(Bucket=self.bucket, Key=key)
            logger.info("Deleted media object %s", key)
            return True
        except (BotoCoreError, ClientError, RuntimeError) as exc:
            logger.warning("Failed to delete media object %s: %s", key, exc)
            return False
