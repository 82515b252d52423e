# utils/auth_token.py
"""HS256 JSON Web Tokens signed with settings.JWT_SECRET."""
import base64, hmac, json, time
from hashlib import sha256
from typing import Any, Dict, Optional
from config import settings

class TokenConfigError(RuntimeError):
    """No signing secret is configured."""

def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")

def _b64d(data: str) -> bytes:
    pad = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + pad)

def _secret(secret: Optional[str]) -> bytes:
    secret = secret if secret is not None else settings.JWT_SECRET
    if not secret:
        raise TokenConfigError("JWT secret is not configured")
    return secret.encode()

def sign(payload: Dict[str, Any], exp_seconds: Optional[int] = None, secret: Optional[str] = None) -> str:
    header = {"alg":"HS256","typ":"JWT"}
    body = dict(payload)
    body["exp"] = int(time.time()) + (exp_seconds if exp_seconds is not None else settings.TOKEN_EXPIRY_SECONDS)
    h = _b64(json.dumps(header, separators=(",",":")).encode())
    p = _b64(json.dumps(body,   separators=(",",":")).encode())
    mac = hmac.new(_secret(secret), f"{h}.{p}".encode(), sha256).digest()
    s = _b64(mac)
    return f"{h}.{p}.{s}"

def verify(token: str, secret: Optional[str] = None) -> Dict[str, Any]:
    key = _secret(secret)
    try:
        h,p,s = token.split(".")
        header = json.loads(_b64d(h))
        if header.get("alg") != "HS256":
            raise ValueError
        expected = hmac.new(key, f"{h}.{p}".encode(), sha256).digest()
        got = _b64d(s)
        if not hmac.compare_digest(expected, got):
            raise ValueError
        body = json.loads(_b64d(p))
        # exp is optional, enforced when present
        if "exp" in body and int(time.time()) > int(body["exp"]):
            raise ValueError
        return body
    except Exception:
        raise ValueError("invalid_or_expired_token")

def user_id_from_claims(claims: Dict[str, Any]) -> Optional[str]:
    for claim in ("id", "userId", "sub"):
        value = claims.get(claim)
        if value not in (None, ""):
            return str(value)
    return None
