import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

from core.settings import get_settings


@dataclass(frozen=True)
class Caller:
    """Authenticated identity resolved from the request claims."""

    user_id: str
    username: str
    email: str | None = None


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _decode_jwt(token: str, secret: str) -> dict:
    header_b64, payload_b64, signature_b64 = token.split(".")
    signing_input = f"{header_b64}.{payload_b64}".encode()
    expected = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    actual = _b64url_decode(signature_b64)
    if not hmac.compare_digest(expected, actual):
        raise ValueError("invalid signature")
    header = json.loads(_b64url_decode(header_b64).decode())
    if header.get("alg") != "HS256":
        raise ValueError("unsupported alg")
    return json.loads(_b64url_decode(payload_b64).decode())


def verify_jwt(
    authorization: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
    x_username: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> dict:
    """Verify the bearer token and return its claims.

    - In DEV, allow the X-User-Id / X-Username / X-User-Email header shortcut.
    - Otherwise require Authorization: Bearer <jwt> signed with the HS256 secret.
    """
    settings = get_settings()
    if settings.env == "DEV" and x_user_id:
        claims = {"sub": x_user_id, "cognito:username": x_username or x_user_id}
        if x_user_email:
            claims["email"] = x_user_email
        return claims
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="unauthorized")
    token = authorization.split(" ", 1)[1]
    try:
        return _decode_jwt(token, settings.jwt_secret)
    except Exception:
        raise HTTPException(status_code=401, detail="unauthorized")


def caller_from_claims(claims: dict) -> Caller:
    user_id = claims.get("sub")
    username = claims.get("cognito:username") or claims.get("email")
    if not user_id or not username:
        raise HTTPException(status_code=401, detail="unauthorized")
    return Caller(user_id=user_id, username=username, email=claims.get("email"))


def get_caller(claims: dict = Depends(verify_jwt)) -> Caller:
    return caller_from_claims(claims)
