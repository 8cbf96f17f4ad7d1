"""
Auth Router
===========
Email/password accounts for the user of this device.

POST /api/v1/auth/register        — Create an account (signs in unless email confirmation is pending)
POST /api/v1/auth/login           — Sign in
POST /api/v1/auth/logout          — Sign out
POST /api/v1/auth/reset-password  — Send a password reset email

Failures carry a short message that can be shown to the user as-is.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from serenity.dependencies import get_auth_service
from serenity.models.auth import AuthUser, Credentials, PasswordResetRequest
from serenity.services.auth import AuthError, AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _auth_failed(exc: AuthError, status_code: int = status.HTTP_401_UNAUTHORIZED) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"message": exc.message, "code": exc.code},
    )


@router.post(
    "/register",
    response_model=AuthUser,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    responses={400: {"description": "Weak password, invalid or taken email"}},
)
async def register(
    body: Credentials,
    auth: AuthService = Depends(get_auth_service),
) -> AuthUser:
    try:
        return await auth.register(body.email, body.password)
    except AuthError as exc:
        raise _auth_failed(exc, status.HTTP_400_BAD_REQUEST) from exc


@router.post(
    "/login",
    response_model=AuthUser,
    summary="Sign in",
    responses={401: {"description": "Invalid email or password"}},
)
async def login(
    body: Credentials,
    auth: AuthService = Depends(get_auth_service),
) -> AuthUser:
    try:
        return await auth.login(body.email, body.password)
    except AuthError as exc:
        raise _auth_failed(exc) from exc


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Sign out")
async def logout(
    auth: AuthService = Depends(get_auth_service),
) -> None:
    try:
        await auth.logout()
    except AuthError:
        # The local session is gone either way.
        logger.warning("Remote sign-out failed; local session cleared")


@router.post(
    "/reset-password",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Send a password reset email",
)
async def reset_password(
    body: PasswordResetRequest,
    auth: AuthService = Depends(get_auth_service),
) -> dict[str, str]:
    try:
        await auth.reset_password(body.email)
    except AuthError as exc:
        raise _auth_failed(exc, status.HTTP_400_BAD_REQUEST) from exc
    return {"message": "If an account exists for this email, a reset link is on its way."}
