"""Firebase ID token verification and portal account resolution"""

import asyncio
import base64
import json
import time
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from portal import auth

PROJECT_ID = "av-portal-test"


def b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


@pytest.fixture(scope="module")
def signing_key():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "securetoken.test")])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return key, cert.public_bytes(serialization.Encoding.PEM).decode()


@pytest.fixture(autouse=True)
def google_certs(monkeypatch, signing_key):
    monkeypatch.setattr(auth, "FIREBASE_PROJECT_ID", PROJECT_ID)
    monkeypatch.setattr(auth, "_google_certs", {"k1": signing_key[1]})
    monkeypatch.setattr(auth, "_google_certs_expire_at", time.time() + 3600)


def make_token(signing_key, kid="k1", **overrides) -> str:
    now = int(time.time())
    claims = {
        "aud": PROJECT_ID,
        "iss": f"https://securetoken.google.com/{PROJECT_ID}",
        "sub": "firebase-uid-1",
        "email": "Bursar@StBrendan.example.org",
        "iat": now - 10,
        "exp": now + 3600,
    }
    claims.update(overrides)
    header = b64url(json.dumps({"alg": "RS256", "kid": kid}).encode())
    body = b64url(json.dumps(claims).encode())
    signature = signing_key[0].sign(f"{header}.{body}".encode(), padding.PKCS1v15(), hashes.SHA256())
    return f"{header}.{body}.{b64url(signature)}"


def verify(token):
    return asyncio.run(auth.verify_firebase_token(token))


class TestVerifyToken:
    def test_valid_token(self, signing_key):
        claims = verify(make_token(signing_key))
        assert claims["sub"] == "firebase-uid-1"

    def test_tampered_claims(self, signing_key):
        header, _, signature = make_token(signing_key).split(".")
        forged = b64url(json.dumps({"aud": PROJECT_ID, "sub": "someone-else"}).encode())
        with pytest.raises(HTTPException) as exc:
            verify(f"{header}.{forged}.{signature}")
        assert exc.value.status_code == 401
        assert exc.value.detail == "Invalid token signature"

    def test_expired(self, signing_key):
        with pytest.raises(HTTPException) as exc:
            verify(make_token(signing_key, exp=int(time.time()) - 5))
        assert exc.value.status_code == 401
        assert exc.value.headers == {"X-Token-Expired": "true"}

    @pytest.mark.parametrize(
        "claim, value",
        [("aud", "other-project"), ("iss", "https://securetoken.google.com/other-project")],
    )
    def test_wrong_project(self, signing_key, claim, value):
        with pytest.raises(HTTPException) as exc:
            verify(make_token(signing_key, **{claim: value}))
        assert exc.value.status_code == 401

    def test_malformed(self):
        with pytest.raises(HTTPException) as exc:
            verify("not-a-jwt")
        assert exc.value.detail == "Malformed token"

    def test_unknown_kid_refreshes_once(self, monkeypatch, signing_key):
        calls = []

        async def certs(force_refresh=False):
            calls.append(force_refresh)
            return {"k1": signing_key[1]}

        monkeypatch.setattr(auth, "get_google_public_keys", certs)
        with pytest.raises(HTTPException) as exc:
            verify(make_token(signing_key, kid="rotated"))
        assert exc.value.detail == "Unable to verify token signature"
        assert calls == [False, True]


class TestCurrentUser:
    def resolve(self, db, token):
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)
        return asyncio.run(auth.get_current_user(credentials, db))

    def test_first_sign_in_links_by_email(self, db, users, signing_key):
        user = self.resolve(db, make_token(signing_key))
        assert user.id == users["client_admin"].id
        assert user.firebase_uid == "firebase-uid-1"

        # Later sign-ins match on the uid even if the email changed
        again = self.resolve(db, make_token(signing_key, email="new@example.org"))
        assert again.id == user.id

    def test_unknown_login(self, db, users, signing_key):
        with pytest.raises(HTTPException) as exc:
            self.resolve(db, make_token(signing_key, sub="stranger", email="stranger@example.org"))
        assert exc.value.status_code == 403

    def test_deactivated(self, db, users, signing_key):
        users["client_admin"].is_active = False
        db.commit()
        with pytest.raises(HTTPException) as exc:
            self.resolve(db, make_token(signing_key))
        assert exc.value.detail == "Account is deactivated"

    def test_missing_credentials(self, db):
        with pytest.raises(HTTPException) as exc:
            asyncio.run(auth.get_current_user(None, db))
        assert exc.value.status_code == 401
