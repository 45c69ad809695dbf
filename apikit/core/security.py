"""Random, hashing and identity primitives."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import uuid
from typing import Any

import bcrypt

DEFAULT_RANDOM_CHARS = "23456789abcdefghjkmnopqrstuvwxyzABCDEFGHJKMNOPQRSTUVWYZ"
UUID_LENGTH = 36


class SecurityError(RuntimeError):
    pass


def random_string(length: int = 10, chars: str | None = None) -> str:
    # Ambiguous glyphs (0/O, 1/l/I) are left out of the default alphabet.
    alphabet = chars or DEFAULT_RANDOM_CHARS
    if length < 0:
        raise SecurityError("Random string length must be >= 0.")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def uuid_string() -> str:
    """Canonical 36-character UUID4 string."""
    return str(uuid.uuid4())


def salted(value: str, pepper: str = "", *, salt: str, algorithm: str = "sha256") -> str:
    """Keyed digest of ``value``: base64(HMAC(salt + pepper, value)).

    Used for client secrets and bearer tokens, which are stored only in this form.
    """
    key = f"{salt}{pepper}".encode("utf-8")
    digest = hmac.new(key, (value or "").encode("utf-8"), getattr(hashlib, algorithm)).digest()
    return base64.b64encode(digest).decode("ascii")


def matches_salted(value: str, expected: str, pepper: str = "", *, salt: str, algorithm: str = "sha256") -> bool:
    if not value or not expected:
        return False
    return hmac.compare_digest(salted(value, pepper, salt=salt, algorithm=algorithm), expected)


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise SecurityError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def deserialize(value: Any) -> Any:
    """Decode a JSON object/array string, returning anything else unchanged."""
    if not isinstance(value, (str, bytes)):
        return value
    try:
        decoded = json.loads(value)
    except ValueError:
        return value
    if isinstance(decoded, (dict, list)):
        return decoded
    return value
