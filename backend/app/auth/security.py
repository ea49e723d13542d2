"""Credential hashing and access tokens.

Passwords are stored as bcrypt hashes. bcrypt only reads the first 72
bytes of a password; longer input is cut there before hashing and
checking. Access tokens are HS256 JWTs carrying the user id in an ``id``
claim.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from app.config import get_config
from app.errors import AuthenticationError, ValidationError
from app.storage.schemas import User

_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=get_config().auth.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash
        return False


def validate_password_strength(password: str) -> None:
    """Require length, mixed case, a digit and a symbol.

    Raises:
        ValidationError: If the password is too weak.
    """
    min_length = get_config().auth.password_min_length
    strong = (
        len(password) >= min_length
        and re.search(r"[a-z]", password)
        and re.search(r"[A-Z]", password)
        and re.search(r"\d", password)
        and re.search(r"[^A-Za-z0-9]", password)
    )
    if not strong:
        raise ValidationError(
            f"Password must be at least {min_length} characters long and contain "
            "upper and lower case letters, a number and a symbol",
            "Password validation failed",
        )


def create_access_token(user: User) -> str:
    config = get_config()
    now = datetime.now(timezone.utc)
    payload = {
        "id": user.id,
        "email": user.email,
        "iat": now,
        "exp": now + timedelta(days=config.auth.token_expire_days),
    }
    return jwt.encode(
        payload,
        config.secrets.jwt.secret_key,
        algorithm=config.secrets.jwt.algorithm,
    )


def decode_access_token(token: str) -> str:
    """Verify *token* and return the user id it was issued for.

    Raises:
        AuthenticationError: If the signature is wrong, the token expired,
            or it carries no usable ``id`` claim.
    """
    jwt_secrets = get_config().secrets.jwt
    try:
        payload = jwt.decode(token, jwt_secrets.secret_key, algorithms=[jwt_secrets.algorithm])
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid or expired token") from exc

    user_id = payload.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise AuthenticationError("Invalid or expired token")
    return user_id


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
