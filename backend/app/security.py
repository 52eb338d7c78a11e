"""
Blog Platform Backend — Tokens and Password Hashing
===================================================

What:  Token issuance/verification (JWT, HS256) and bcrypt password hashing.
Why:   Auth routes issue a token at signup/login; protected routes verify the
       bearer token and load the user it names.
How:   TokenService wraps PyJWT with the configured secret and lifetime.
       Password helpers wrap bcrypt; callers run them in a threadpool because
       bcrypt is deliberately slow (~100-300ms per hash).

Token claims:
    sub: user id (ObjectId hex string)
    iat / exp: issue and expiry timestamps (lifetime: JWT_EXPIRES_IN_DAYS)
"""

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from app.config import Settings
from app.exceptions import AuthenticationError, ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes; newer releases reject longer input
BCRYPT_MAX_BYTES = 72


class TokenService:
    def __init__(self, settings: Settings):
        self._settings = settings

    def _secret(self) -> str:
        secret = self._settings.jwt_secret
        if not secret:
            raise ConfigurationError(
                message="JWT_SECRET environment variable is not defined",
                setting="JWT_SECRET",
            )
        return secret

    def sign(self, subject: str) -> str:
        """Issue a token whose `sub` claim is the given user id."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "iat": now,
            "exp": now + timedelta(days=self._settings.jwt_expires_in_days),
        }
        return jwt.encode(payload, self._secret(), algorithm=self._settings.jwt_algorithm)

    def verify(self, token: str) -> str:
        """
        Return the subject of a valid token.

        Raises:
            AuthenticationError: expired, forged, malformed, or missing `sub`.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret(),
                algorithms=[self._settings.jwt_algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError(message="Not authorized, token expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected token: %s", exc)
            raise AuthenticationError(message="Not authorized, token failed") from exc
        return str(payload["sub"])


def hash_password(password: str) -> str:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValidationError(
            message=f"Password must be at most {BCRYPT_MAX_BYTES} bytes long",
            field="password",
        )
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES or not hashed:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Stored password hash has an unexpected format")
        return False
