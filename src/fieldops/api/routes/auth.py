"""Sign-in, sign-up and sign-out routes."""
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from fieldops.api.deps import (
    get_auth_service,
    require_approved,
    require_token,
    require_user,
)
from fieldops.auth.service import REASON_PENDING, AuthService
from fieldops.auth.validation import (
    CredentialsValidationError,
    validate_login,
    validate_signup,
)
from fieldops.models.profile import Profile

router = APIRouter()


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class SignupRequest(BaseModel):
    email: str = ""
    password: str = ""
    confirm_password: str = ""
    display_name: Optional[str] = None


class AuthResponse(BaseModel):
    ok: bool
    message: str
    reason: Optional[str] = None
    access_token: Optional[str] = None


@router.post("/login", response_model=AuthResponse)
def login(request: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        validate_login(request.email, request.password)
    except CredentialsValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    result = auth.sign_in(request.email, request.password)
    if not result.ok:
        code = (
            status.HTTP_403_FORBIDDEN
            if result.reason == REASON_PENDING
            else status.HTTP_401_UNAUTHORIZED
        )
        raise HTTPException(
            status_code=code,
            detail={"ok": False, "message": result.message, "reason": result.reason},
        )
    return AuthResponse(**asdict(result))


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(request: SignupRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        validate_signup(request.email, request.password, request.confirm_password)
    except CredentialsValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    result = auth.sign_up(request.email, request.password, request.display_name)
    if not result.ok:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    return AuthResponse(**asdict(result))


@router.post("/logout", dependencies=[Depends(require_user)])
def logout(
    token: str = Depends(require_token),
    auth: AuthService = Depends(get_auth_service),
):
    auth.sign_out(token)
    return {"ok": True}


@router.get("/me", response_model=Profile)
def me(profile: Profile = Depends(require_approved)):
    return profile
