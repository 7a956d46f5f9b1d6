"""JWT issue and verification (python-jose, HS256 by default).

Two token types share one secret: short-lived "access" tokens for API calls
and long-lived "refresh" tokens that can only mint new access tokens. The
"type" claim is checked on every decode so one cannot stand in for the other.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from config.settings import settings
from src.pm_common.errors import InvalidCredentialsError, InvalidRefreshTokenError

_ALGORITHM = settings.JWT_ALGORITHM
_ACCESS_TTL = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
_REFRESH_TTL = timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS)


def _issue(user_id: str, token_type: str, ttl: timedelta) -> str:
    now = datetime.now(UTC)
    claims = {"sub": user_id, "type": token_type, "iat": now, "exp": now + ttl}
    return str(jwt.encode(claims, settings.JWT_SECRET, algorithm=_ALGORITHM))


def create_access_token(user_id: str) -> str:
    return _issue(user_id, "access", _ACCESS_TTL)


def create_refresh_token(user_id: str) -> str:
    return _issue(user_id, "refresh", _REFRESH_TTL)


def decode_token(token: str, expected_type: str) -> dict[str, str]:
    """Verify signature, expiry and token type.

    Raises:
        InvalidCredentialsError: bad access token.
        InvalidRefreshTokenError: bad refresh token.
    """
    try:
        claims: dict[str, str] = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[_ALGORITHM]
        )
    except JWTError:
        raise _auth_error(expected_type) from None
    if claims.get("type") != expected_type:
        raise _auth_error(expected_type)
    return claims


def _auth_error(expected_type: str) -> Exception:
    if expected_type == "access":
        return InvalidCredentialsError()
    return InvalidRefreshTokenError()
