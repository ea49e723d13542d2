"""Account router.

Endpoints:
    POST  /api/v1/auth/register            - Create an account, returns a token
    POST  /api/v1/auth/login               - Exchange credentials for a token
    POST  /api/v1/auth/forgot-password     - Request a reset (mail delivery stubbed)
    POST  /api/v1/auth/reset-password      - Set a new password by email
    GET   /api/v1/auth/me                  - Current account
    PATCH /api/v1/auth/me                  - Update profile and preferences
    POST  /api/v1/auth/me/change-password  - Change password
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.storage import PersistenceGateway, User, get_store

from .dependencies import get_current_user
from .schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    ResetPasswordRequest,
)
from .service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _service(store: PersistenceGateway = Depends(get_store)) -> AccountService:
    return AccountService(store)


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest, service: AccountService = Depends(_service)
) -> JSONResponse:
    """Register a new user and return it with an access token."""
    user, token = await service.register(body)
    return JSONResponse(
        {
            "message": "User registered successfully",
            "user": user.model_dump(mode="json"),
            "token": token,
        },
        status_code=201,
    )


@router.post("/login")
async def login(
    body: LoginRequest, service: AccountService = Depends(_service)
) -> JSONResponse:
    """Log in with email and password."""
    user, token = await service.login(body.email, body.password)
    return JSONResponse({
        "message": "Login successful",
        "user": user.model_dump(mode="json"),
        "token": token,
    })


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest, service: AccountService = Depends(_service)
) -> JSONResponse:
    await service.request_password_reset(body.email)
    return JSONResponse({"message": "Password reset link sent to email"})


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest, service: AccountService = Depends(_service)
) -> JSONResponse:
    await service.reset_password(body.email, body.newPassword)
    return JSONResponse({"message": "Password reset successful"})


@router.get("/me")
async def get_account(user: User = Depends(get_current_user)) -> JSONResponse:
    return JSONResponse({"user": user.model_dump(mode="json")})


@router.patch("/me")
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(_service),
) -> JSONResponse:
    """Update the caller's profile.

    Existing rooms keep the name and avatar captured when they were created.
    """
    updated = await service.update_profile(user.id, body)
    return JSONResponse({
        "message": "Profile updated successfully",
        "user": updated.model_dump(mode="json"),
    })


@router.post("/me/change-password")
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(_service),
) -> JSONResponse:
    await service.change_password(user.id, body.currentPassword, body.newPassword)
    return JSONResponse({"message": "Password changed successfully"})
