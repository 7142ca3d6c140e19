"""JWT authentication for API operators."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, cast

import bcrypt
from jose import jwt, JWTError

from provisioning.config import AuthSettings
from provisioning.domain.models.user import User


class JWTHandler:
    """Issues and validates operator tokens.

    Access tokens carry the operator's role so permission checks need no store
    lookup; refresh tokens only carry the subject.
    """

    def __init__(self, settings: AuthSettings) -> None:
        self._settings = settings

    def _encode(self, payload: dict[str, Any], lifetime: timedelta) -> str:
        claims = {**payload, "exp": datetime.now(timezone.utc) + lifetime}
        return cast(
            str,
            jwt.encode(claims, self._settings.secret_key, algorithm=self._settings.algorithm),
        )

    def create_access_token(self, user: User, extra: dict[str, Any] | None = None) -> str:
        payload: dict[str, Any] = {
            "sub": user.id,
            "username": user.username,
            "email": user.email,
            "role": user.role.value,
            "tenant_id": user.tenant_id,
            "type": "access",
        }
        if extra:
            payload.update(extra)
        return self._encode(
            payload, timedelta(minutes=self._settings.access_token_expire_minutes),
        )

    def create_refresh_token(self, user: User) -> str:
        return self._encode(
            {"sub": user.id, "type": "refresh"},
            timedelta(days=self._settings.refresh_token_expire_days),
        )

    @property
    def access_token_ttl_seconds(self) -> int:
        return self._settings.access_token_expire_minutes * 60

    def decode_token(self, token: str, expected_type: str | None = None) -> dict[str, Any]:
        """Decode a token, optionally insisting on its ``type`` claim."""
        try:
            payload = cast(
                dict[str, Any],
                jwt.decode(token, self._settings.secret_key, algorithms=[self._settings.algorithm]),
            )
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e
        if expected_type is not None and payload.get("type") != expected_type:
            raise InvalidTokenError(f"Expected a {expected_type} token")
        return payload

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        if not hashed_password:
            return False
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


class InvalidTokenError(Exception):
    """Raised when a JWT token is invalid."""
