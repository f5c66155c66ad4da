"""Deliverable object storage on Cloudflare R2 (S3 API).

Files are uploaded by the client straight to R2 through a presigned PUT;
the backend only mints keys and URLs and later checks that a key it is
asked to record actually exists.
"""
import logging
import mimetypes
import uuid
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, status

from app.config import settings

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/webm": ".webm",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/heic": ".heic",
    "audio/mpeg": ".mp3",
    "application/pdf": ".pdf",
}


def booking_prefix(booking_id: str) -> str:
    return f"deliverables/{booking_id}/"


def guess_extension(file_name: Optional[str], mime_type: Optional[str]) -> str:
    if file_name and "." in file_name:
        ext = file_name.rsplit(".", 1)[-1].strip().lower()
        if ext and ext.isalnum():
            return "." + ext
    if mime_type:
        mime_type = mime_type.lower()
        return _EXTENSIONS.get(mime_type) or mimetypes.guess_extension(mime_type) or ""
    return ""


def build_key(booking_id: str, file_name: Optional[str], mime_type: Optional[str]) -> str:
    return f"{booking_prefix(booking_id)}{uuid.uuid4().hex}{guess_extension(file_name, mime_type)}"


class R2Storage:
    def __init__(
        self,
        account_id: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        bucket: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        upload_ttl_seconds: Optional[int] = None,
    ):
        account_id = account_id or settings.R2_ACCOUNT_ID
        self.access_key_id = access_key_id or settings.R2_ACCESS_KEY_ID
        self.secret_access_key = secret_access_key or settings.R2_SECRET_ACCESS_KEY
        self.bucket = bucket or settings.R2_BUCKET
        self.endpoint_url = endpoint_url or settings.R2_S3_ENDPOINT or (
            f"https://{account_id}.r2.cloudflarestorage.com" if account_id else ""
        )
        self.upload_ttl_seconds = upload_ttl_seconds or settings.R2_PRESIGN_UPLOAD_TTL
        self._s3 = None

    def is_configured(self) -> bool:
        return bool(self.bucket and self.endpoint_url and self.access_key_id and self.secret_access_key)

    def _client(self):
        # R2 needs s3v4 signatures, region "auto" and path-style addressing.
        if not self.is_configured():
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Deliverable storage is not configured",
            )
        if self._s3 is None:
            self._s3 = boto3.client(
                "s3",
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                endpoint_url=self.endpoint_url,
                region_name="auto",
                config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
            )
        return self._s3

    def build_key(self, booking_id: str, file_name: Optional[str], mime_type: Optional[str]) -> str:
        return build_key(booking_id, file_name, mime_type)

    def presign_upload(self, key: str, mime_type: Optional[str]) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        if mime_type:
            params["ContentType"] = mime_type
        try:
            return self._client().generate_presigned_url(
                ClientMethod="put_object",
                Params=params,
                ExpiresIn=self.upload_ttl_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Presigning upload for %s failed: %s", key, exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Storage error")

    def object_exists(self, key: str) -> bool:
        try:
            self._client().head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            logger.error("HEAD %s failed: %s", key, exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Storage error")
        except BotoCoreError as exc:
            logger.error("HEAD %s failed: %s", key, exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Storage error")
        return True


_storage: Optional[R2Storage] = None


def get_storage() -> R2Storage:
    """FastAPI dependency: process-wide R2 client built from settings."""
    global _storage
    if _storage is None:
        _storage = R2Storage()
    return _storage
