from pydantic import BaseModel, Field


class MfaSetupOut(BaseModel):
    secret: str
    qr_code: str            # data:image/png;base64,...
    backup_codes: list[str]


class MfaCodeIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)


class MfaSetupVerifyIn(BaseModel):
    code: str = Field(..., min_length=6, max_length=6)


class MfaVerifySetupOut(BaseModel):
    message: str
    backup_codes: list[str]


class MfaDisableIn(BaseModel):
    password: str = Field(..., min_length=1)


class MfaStatusOut(BaseModel):
    mfa_enabled: bool
