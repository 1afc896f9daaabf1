import base64
import json
import logging
import re
import time
from typing import Optional

import httpx
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509 import load_pem_x509_certificate
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import FIREBASE_PROJECT_ID
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

GOOGLE_CERTS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)
CLOCK_SKEW_SECONDS = 60

# kid -> PEM, refreshed when Google's Cache-Control max-age runs out
_google_certs: dict[str, str] = {}
_google_certs_expire_at = 0.0


async def get_google_public_keys(force_refresh: bool = False) -> dict[str, str]:
    """Google's current Firebase signing certificates, keyed by kid"""
    global _google_certs, _google_certs_expire_at
    if _google_certs and not force_refresh and time.time() < _google_certs_expire_at:
        return _google_certs

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.get(GOOGLE_CERTS_URL)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"❌ Could not refresh Google signing certificates: {e}")
        return _google_certs

    max_age = re.search(r"max-age=(\d+)", response.headers.get("cache-control", ""))
    _google_certs = response.json()
    _google_certs_expire_at = time.time() + (int(max_age.group(1)) if max_age else 3600)
    logger.info(f"✅ Loaded {len(_google_certs)} Google signing certificates")
    return _google_certs


def _b64url_decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


async def _signing_certificate(kid: str):
    certs = await get_google_public_keys()
    if kid not in certs:
        # Key rotation: one forced refresh before giving up
        certs = await get_google_public_keys(force_refresh=True)
    if kid not in certs:
        logger.error(f"❌ No Google certificate for kid {kid}")
        raise HTTPException(status_code=401, detail="Unable to verify token signature")
    return load_pem_x509_certificate(certs[kid].encode())


def _check_claims(claims: dict) -> None:
    if claims.get("aud") != FIREBASE_PROJECT_ID:
        raise HTTPException(status_code=401, detail="Invalid token audience")
    if claims.get("iss") != f"https://securetoken.google.com/{FIREBASE_PROJECT_ID}":
        raise HTTPException(status_code=401, detail="Invalid token issuer")

    now = time.time()
    if claims.get("exp", 0) < now:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        )
    if claims.get("iat", 0) > now + CLOCK_SKEW_SECONDS:
        raise HTTPException(status_code=401, detail="Token issued in the future")


async def verify_firebase_token(token: str) -> dict:
    """
    Verify a Firebase ID token and return its claims.

    The RS256 signature is checked against Google's published certificates,
    then audience, issuer, expiry and issued-at.
    """
    if not FIREBASE_PROJECT_ID:
        logger.error("❌ FIREBASE_PROJECT_ID is not set, cannot verify sign-ins")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    try:
        signed_part, signature_b64 = token.rsplit(".", 1)
        header_b64, claims_b64 = signed_part.split(".")
        header = json.loads(_b64url_decode(header_b64))
        claims = json.loads(_b64url_decode(claims_b64))
        signature = _b64url_decode(signature_b64)
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Malformed token") from e

    if header.get("alg") != "RS256" or "kid" not in header:
        raise HTTPException(status_code=401, detail="Invalid token algorithm")

    certificate = await _signing_certificate(header["kid"])
    try:
        certificate.public_key().verify(
            signature, signed_part.encode(), padding.PKCS1v15(), hashes.SHA256()
        )
    except Exception as e:
        logger.warning(f"⚠️ Rejected token with bad signature: {e}")
        raise HTTPException(status_code=401, detail="Invalid token signature") from e

    _check_claims(claims)
    return claims


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the portal user behind a Firebase bearer token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    decoded_token = await verify_firebase_token(credentials.credentials)

    firebase_uid = decoded_token.get("sub") or decoded_token.get("user_id")
    email = (decoded_token.get("email") or "").strip().lower()
    if not firebase_uid:
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = db.query(User).filter(User.firebase_uid == firebase_uid).first()

    if not user and email:
        # Admins create accounts by email; the identity is linked on first sign-in
        user = db.query(User).filter(User.email == email).first()
        if user:
            logger.info(f"🔄 Linking portal user {user.id} to Firebase UID")
            user.firebase_uid = firebase_uid
            try:
                db.commit()
                db.refresh(user)
            except Exception as e:
                db.rollback()
                logger.error(f"❌ Failed to link user {user.id}: {str(e)}")
                raise HTTPException(status_code=500, detail="Failed to link account") from e

    if not user:
        logger.warning(f"⚠️ Sign-in without a portal account: {email or firebase_uid}")
        raise HTTPException(status_code=403, detail="No portal account for this login")

    if not user.is_active:
        logger.warning(f"⚠️ Deactivated user {user.id} attempted access")
        raise HTTPException(status_code=403, detail="Account is deactivated")

    return user
