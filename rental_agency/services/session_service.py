from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import threading
import time
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rental_agency.models.agency_models import AuthUser


SESSION_TTL_SECONDS = 60 * 60 * 12

_LOCK = threading.Lock()
_REVOKED: dict[str, float] = {}


def _require_session_secret() -> bytes:
    raw = (os.environ.get("SESSION_SIGNING_SECRET") or "").strip()
    if len(raw) < 32:
        raise RuntimeError("SESSION_SIGNING_SECRET must be set and at least 32 characters long.")
    return raw.encode("utf-8")


_SESSION_SECRET = _require_session_secret()


def find_active_user(db: Session, email: str) -> AuthUser | None:
    normalized = (email or "").strip().lower()
    if not normalized:
        return None
    return db.execute(
        select(AuthUser)
        .where(func.lower(AuthUser.Email) == normalized)
        .where(AuthUser.IsActive.is_(True))
    ).scalars().first()


def session_payload_for(user: AuthUser) -> dict[str, Any]:
    return {
        "userID": user.UserID,
        "agencyID": user.AgencyID,
        "agencyName": user.Agency.Name if user.Agency else None,
        "email": user.Email,
        "firstName": user.FirstName,
        "lastName": user.LastName,
        "role": user.Role,
    }


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(encoded: str) -> bytes:
    return base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4))


def _sign(encoded: str) -> bytes:
    return hmac.new(_SESSION_SECRET, encoded.encode("ascii"), hashlib.sha256).digest()


def create_session(payload: dict[str, Any]) -> str:
    session_payload = dict(payload)
    session_payload["expiresAt"] = time.time() + SESSION_TTL_SECONDS
    body = json.dumps(session_payload, ensure_ascii=True, separators=(",", ":")).encode("utf-8")
    encoded = _b64encode(body)
    return f"{encoded}.{_b64encode(_sign(encoded))}"


def get_session(token: str | None) -> dict[str, Any] | None:
    if not token:
        return None
    try:
        encoded, encoded_sig = token.split(".", 1)
        if not hmac.compare_digest(_sign(encoded), _b64decode(encoded_sig)):
            return None
        decoded = json.loads(_b64decode(encoded).decode("utf-8"))
    except ValueError:
        return None
    if not isinstance(decoded, dict):
        return None

    now = time.time()
    if now >= float(decoded.get("expiresAt") or 0.0):
        return None

    with _LOCK:
        for revoked_token, expires_at in list(_REVOKED.items()):
            if now >= expires_at:
                _REVOKED.pop(revoked_token, None)
        if token in _REVOKED:
            return None
    return decoded


def remove_session(token: str | None) -> None:
    session = get_session(token)
    if not session:
        return
    with _LOCK:
        _REVOKED[token] = float(session.get("expiresAt") or time.time() + SESSION_TTL_SECONDS)
