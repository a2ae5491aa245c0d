from __future__ import annotations

import hashlib
import hmac
import secrets

from rental_agency.models.agency_models import AuthUser


MIN_PASSWORD_LENGTH = 8
PBKDF2_ITERATIONS = 120000


def password_hash(password: str, salt: str) -> str:
    raw = hashlib.pbkdf2_hmac(
        "sha256",
        (password or "").encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
    )
    return raw.hex()


def set_password(user: AuthUser, password: str) -> None:
    trimmed = (password or "").strip()
    if len(trimmed) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    salt = secrets.token_hex(16)
    user.PasswordSalt = salt
    user.PasswordHash = password_hash(trimmed, salt)


def verify_password(user: AuthUser, password: str) -> bool:
    if not user.PasswordHash or not user.PasswordSalt:
        return False
    candidate = password_hash((password or "").strip(), user.PasswordSalt)
    return hmac.compare_digest(candidate, user.PasswordHash)
