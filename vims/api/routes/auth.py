"""
Authentication API routes.

Staff exchange their credentials for a JWT bearer token.
"""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from vims.api.deps import CurrentUser, RateLimited
from vims.core.logging import get_logger
from vims.core.security import authenticate, create_user_token
from vims.domain.models import UserRole

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    """Credentials of a fixed staff account."""

    username: str = Field(..., min_length=1, examples=["admin"])
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    username: str
    role: UserRole
    full_name: str


class TokenResponse(BaseModel):
    """Bearer token and the account it belongs to."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Sign in",
    responses={401: {"description": "Invalid credentials"}},
)
async def login(request: LoginRequest, _: RateLimited) -> TokenResponse:
    """Return a bearer token for valid staff credentials."""
    user = authenticate(request.username, request.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info("user_logged_in", username=user.username, role=user.role.value)
    return TokenResponse(
        access_token=create_user_token(user),
        user=UserResponse(username=user.username, role=user.role, full_name=user.full_name),
    )


@router.get("/me", response_model=UserResponse, summary="Current account")
async def me(user: CurrentUser) -> UserResponse:
    return UserResponse(username=user.username, role=user.role, full_name=user.full_name)
