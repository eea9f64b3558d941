import logging
import os
from pathlib import Path
from uuid import uuid4

from botocore.exceptions import BotoCoreError, ClientError

from insomnia_fuel.core.config import GALLERY_FOLDER, GALLERY_UPLOAD_URL_TTL_SECONDS
from insomnia_fuel.services.errors import MediaStorageError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".avif"}


def _get_required_env(var_name: str) -> str:
    value = os.getenv(var_name, "").strip()
    if not value:
        raise MediaStorageError(f"Missing required environment variable: {var_name}")
    return value


def _get_r2_client():
    r2_account_id = _get_required_env("R2_ACCOUNT_ID")
    r2_access_key_id = _get_required_env("R2_ACCESS_KEY_ID")
    r2_secret_access_key = _get_required_env("R2_SECRET_ACCESS_KEY")

    import boto3

    return boto3.client(
        "s3",
        endpoint_url=f"https://{r2_account_id}.r2.cloudflarestorage.com",
        aws_access_key_id=r2_access_key_id,
        aws_secret_access_key=r2_secret_access_key,
        region_name="auto",
    )


def _sanitize_key_part(part: str) -> str:
    return part.strip().strip("/")


def build_object_key(filename: str, folder: str = GALLERY_FOLDER) -> str:
    extension = Path(filename or "").suffix.lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValueError(f"Unsupported image type: {extension or 'none'}")
    return "/".join([_sanitize_key_part(folder), f"{uuid4().hex}{extension}"])


def public_url_for(object_key: str) -> str:
    r2_public_url = _get_required_env("R2_PUBLIC_URL").rstrip("/")
    return f"{r2_public_url}/{object_key}"


def create_upload_url(filename: str, content_type: str | None = None) -> dict:
    """Presigned PUT so the admin UI uploads straight to the bucket."""
    r2_bucket_name = _get_required_env("R2_BUCKET_NAME")
    object_key = build_object_key(filename)

    params = {"Bucket": r2_bucket_name, "Key": object_key}
    if content_type:
        params["ContentType"] = content_type

    try:
        upload_url = _get_r2_client().generate_presigned_url(
            "put_object",
            Params=params,
            ExpiresIn=GALLERY_UPLOAD_URL_TTL_SECONDS,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.error("presigned upload url failed: %s", exc)
        raise MediaStorageError("Failed to sign upload") from exc

    return {
        "uploadUrl": upload_url,
        "objectKey": object_key,
        "publicUrl": public_url_for(object_key),
        "expiresIn": GALLERY_UPLOAD_URL_TTL_SECONDS,
    }


def delete_object(object_key: str) -> None:
    r2_bucket_name = _get_required_env("R2_BUCKET_NAME")
    try:
        _get_r2_client().delete_object(Bucket=r2_bucket_name, Key=object_key)
    except (BotoCoreError, ClientError) as exc:
        logger.error("bucket delete failed for %s: %s", object_key, exc)
        raise MediaStorageError("Failed to delete image from storage") from exc
