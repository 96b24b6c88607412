"""
Security utilities for authentication, authorization, and rate limiting.

Staff sign in with one of the fixed accounts and receive a JWT bearer
token. LPR terminals may instead present the shared API key.
"""

import secrets
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from vims.core.config import get_settings
from vims.core.logging import get_logger
from vims.domain.models import UserRole

logger = get_logger(__name__)

# Security schemes
bearer_auth = HTTPBearer(auto_error=False)
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


@dataclass
class TokenData:
    """JWT token payload data."""

    username: str
    role: UserRole
    exp: datetime


@dataclass
class User:
    """Authenticated user representation."""

    username: str
    role: UserRole
    full_name: str = ""


# Fixed staff accounts; all share settings.default_user_password.
USERS: dict[str, User] = {
    "admin": User("admin", UserRole.ADMIN, "System Admin"),
    "staff1": User("staff1", UserRole.STAFF, "Luqman Staff"),
    "guard1": User("guard1", UserRole.ADMIN, "Gate Guard (Admin Priv)"),
    "lpr1": User("lpr1", UserRole.LPR_READER, "LPR Terminal Operator"),
}

LPR_TERMINAL = User("lpr-terminal", UserRole.LPR_READER, "LPR Terminal")


def authenticate(username: str, password: str) -> User | None:
    """
    Look up a fixed account and check its password.

    Args:
        username: Account name.
        password: Plain text password.

    Returns:
        User: The account, or None if the credentials do not match.
    """
    user = USERS.get(username)
    settings = get_settings()
    is_correct_password = secrets.compare_digest(
        password.encode("utf8"),
        settings.default_user_password.encode("utf8"),
    )
    if user is None or not is_correct_password:
        logger.warning("auth_failed", username=username, reason="invalid_credentials")
        return None
    return user


def create_access_token(
    data: dict,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode in the token.
        expires_delta: Optional custom expiration time.

    Returns:
        str: Encoded JWT token.
    """
    settings = get_settings()
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode.update({"exp": expire})
    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.algorithm,
    )


def create_user_token(user: User) -> str:
    return create_access_token({"sub": user.username, "role": user.role.value})


def decode_access_token(token: str) -> TokenData | None:
    """
    Decode and validate a JWT access token.

    Returns:
        TokenData: Decoded token data, or None if invalid or expired.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
    except JWTError:
        return None

    username = payload.get("sub")
    role = payload.get("role")
    if username is None or role not in UserRole._value2member_map_:
        return None

    return TokenData(
        username=username,
        role=UserRole(role),
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_auth)],
) -> User:
    """
    Resolve the bearer token to a fixed account.

    Raises:
        HTTPException: 401 if the token is missing, invalid or stale.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = decode_access_token(credentials.credentials)
    user = USERS.get(token.username) if token else None
    if token is None or user is None or user.role != token.role:
        logger.warning("auth_failed", reason="invalid_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_roles(*roles: UserRole) -> Callable[..., Awaitable[User]]:
    """
    Build a dependency admitting only the given roles.

    Example:
        @router.post("/visitors/{visitor_id}/approve")
        async def approve(user: Annotated[User, Depends(require_roles(UserRole.ADMIN))]):
            ...
    """

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role not in roles:
            logger.warning(
                "access_forbidden",
                username=user.username,
                role=user.role.value,
                required=[r.value for r in roles],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return user

    return dependency


async def verify_api_key(
    api_key: Annotated[str | None, Depends(api_key_header)],
) -> None:
    """
    Verify the LPR terminal API key.

    Raises:
        HTTPException: If API key is missing or invalid.
    """
    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required",
        )

    settings = get_settings()
    if not secrets.compare_digest(api_key, settings.api_key):
        logger.warning("api_key_invalid", reason="key_mismatch")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )


async def get_lpr_principal(
    api_key: Annotated[str | None, Depends(api_key_header)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_auth)],
) -> User:
    """
    Admit an LPR terminal by API key, or a LPR_READER/ADMIN by bearer token.
    """
    if api_key is not None:
        await verify_api_key(api_key)
        return LPR_TERMINAL

    user = await get_current_user(credentials)
    if user.role not in (UserRole.LPR_READER, UserRole.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient role",
        )
    return user


@dataclass
class RateLimiter:
    """
    In-memory sliding window rate limiter keyed by client address.

    Attributes:
        requests_per_window: Maximum requests allowed per window.
        window_seconds: Size of the sliding window in seconds.
    """

    requests_per_window: int
    window_seconds: int
    _requests: dict[str, list[float]] = field(default_factory=lambda: defaultdict(list))

    def _recent(self, key: str, now: float) -> list[float]:
        window_start = now - self.window_seconds
        recent = [t for t in self._requests[key] if t > window_start]
        self._requests[key] = recent
        return recent

    def is_allowed(self, key: str) -> bool:
        """Record a request for ``key`` unless the window is already full."""
        now = time.monotonic()
        recent = self._recent(key, now)
        if len(recent) < self.requests_per_window:
            recent.append(now)
            return True
        return False

    def reset(self) -> None:
        self._requests.clear()


_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = RateLimiter(
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    return _rate_limiter


async def check_rate_limit(request: Request) -> None:
    """
    Rate limiting dependency for FastAPI routes.

    Raises:
        HTTPException: If rate limit is exceeded.
    """
    rate_limiter = get_rate_limiter()
    client_ip = request.client.host if request.client else "unknown"

    if not rate_limiter.is_allowed(client_ip):
        logger.warning("rate_limit_exceeded", client_ip=client_ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers={
                "Retry-After": str(rate_limiter.window_seconds),
                "X-RateLimit-Remaining": "0",
            },
        )
