"""
Signature image storage on Cloudflare R2.
Objects are referenced by key; URLs are derived on read.
"""

import base64
import binascii
import logging
from typing import Optional

import boto3
from botocore.client import Config

from .config import (
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_PUBLIC_URL,
    R2_SECRET_ACCESS_KEY,
)

logger = logging.getLogger(__name__)

MAX_SIGNATURE_BYTES = 2 * 1024 * 1024


class SignatureDecodeError(ValueError):
    """Raised when a signature data URL cannot be decoded"""


def get_r2_client():
    """Get configured boto3 client for Cloudflare R2"""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


def decode_signature_data_url(data_url: str) -> bytes:
    """Decode a 'data:image/png;base64,...' signature pad export"""
    if not data_url or "," not in data_url or not data_url.startswith("data:image/"):
        raise SignatureDecodeError("Signature must be an image data URL")

    _header, encoded = data_url.split(",", 1)
    try:
        image_bytes = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SignatureDecodeError("Signature image is not valid base64") from e

    if not image_bytes:
        raise SignatureDecodeError("Signature image is empty")
    if len(image_bytes) > MAX_SIGNATURE_BYTES:
        raise SignatureDecodeError("Signature image is too large")
    return image_bytes


def upload_signature_image(data_url: str, key: str) -> str:
    """Upload a signature image and return its object key"""
    image_bytes = decode_signature_data_url(data_url)

    r2 = get_r2_client()
    r2.put_object(
        Bucket=R2_BUCKET_NAME,
        Key=key,
        Body=image_bytes,
        ContentType="image/png",
    )

    logger.info(f"✅ Uploaded signature to R2: {key}")
    return key


def generate_presigned_url(key: str, expiration: int = 3600) -> str:
    """Presigned GET URL for a private object"""
    r2 = get_r2_client()
    return r2.generate_presigned_url(
        "get_object",
        Params={"Bucket": R2_BUCKET_NAME, "Key": key},
        ExpiresIn=expiration,
    )


def signature_url(key: Optional[str]) -> Optional[str]:
    """Public URL when the bucket is exposed, otherwise a presigned one. Never raises."""
    if not key:
        return None
    if R2_PUBLIC_URL:
        return f"{R2_PUBLIC_URL.rstrip('/')}/{key}"
    try:
        return generate_presigned_url(key)
    except Exception as e:
        logger.warning(f"⚠️ Could not presign signature {key}: {e}")
        return None
