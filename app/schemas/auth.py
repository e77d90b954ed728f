from pydantic import BaseModel, EmailStr, Field, ConfigDict


class RegisterIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=255)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=255)


class RefreshTokenIn(BaseModel):
    refresh_token: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)


class ForgotPasswordIn(BaseModel):
    email: EmailStr


class ResetPasswordIn(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=255)


class ChangePasswordIn(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=255)
    confirm_password: str = Field(..., min_length=1)


class JwtResult(BaseModel):
    token: str
    expires_at: int


class LoginOut(BaseModel):
    access_token: JwtResult
    refresh_token: JwtResult


class MfaRequiredOut(BaseModel):
    mfa_required: bool = True
    temporary_token: str
    expires_at: int


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: EmailStr
    birthday: str | None = None
    address: str | None = None
    gender: int | None = None


class MessageOut(BaseModel):
    message: str
