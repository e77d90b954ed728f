from fastapi import APIRouter, Depends

from app.api.deps import client_ip, get_auth_service, get_current_user
from app.core.errors import InvalidCredentialError, InvalidPasswordError, UserNotFoundError
from app.models.user import User
from app.schemas.auth import (
    ChangePasswordIn, ForgotPasswordIn, JwtResult, LoginIn, LoginOut, MessageOut,
    MfaRequiredOut, RefreshTokenIn, RegisterIn, ResetPasswordIn, UserOut,
)
from app.services.auth import AuthService, LoginResult, MfaChallenge

router = APIRouter(prefix="/auth", tags=["auth"])


def login_out(result: LoginResult) -> LoginOut:
    return LoginOut(
        access_token=JwtResult(token=result.access_token.token, expires_at=result.access_token.expires_at),
        refresh_token=JwtResult(token=result.refresh_token.token, expires_at=result.refresh_token.expires_at),
    )


@router.post("/register", response_model=UserOut, status_code=201)
async def register(payload: RegisterIn, auth: AuthService = Depends(get_auth_service)):
    return await auth.register(payload.email, payload.name, payload.password)


@router.post("/login", response_model=LoginOut | MfaRequiredOut)
async def login(
    payload: LoginIn,
    ip: str = Depends(client_ip),
    auth: AuthService = Depends(get_auth_service),
):
    try:
        result = await auth.login(payload.email, payload.password, ip)
    except (UserNotFoundError, InvalidPasswordError) as exc:
        # same answer for unknown email and wrong password
        raise InvalidCredentialError("Invalid email or password") from exc

    if isinstance(result, MfaChallenge):
        return MfaRequiredOut(
            temporary_token=result.temporary_token.token,
            expires_at=result.temporary_token.expires_at,
        )
    return login_out(result)


@router.post("/refresh-token", response_model=LoginOut)
async def refresh_token(
    payload: RefreshTokenIn,
    ip: str = Depends(client_ip),
    auth: AuthService = Depends(get_auth_service),
):
    result = await auth.refresh_token(payload.refresh_token, payload.access_token, ip)
    return login_out(result)


@router.post("/forgot-password", response_model=MessageOut)
async def forgot_password(payload: ForgotPasswordIn, auth: AuthService = Depends(get_auth_service)):
    await auth.forgot_password(payload.email)
    return MessageOut(message="Forgot password successfully")


@router.post("/reset-password", response_model=MessageOut)
async def reset_password(payload: ResetPasswordIn, auth: AuthService = Depends(get_auth_service)):
    await auth.reset_password(payload.token, payload.new_password)
    return MessageOut(message="Reset password successfully")


@router.post("/change-password", response_model=MessageOut)
async def change_password(
    payload: ChangePasswordIn,
    current_user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    await auth.change_password(
        current_user.id, payload.old_password, payload.new_password, payload.confirm_password
    )
    return MessageOut(message="Change password successfully")


@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
