import base64

from fastapi import APIRouter, Depends

from app.api.deps import (
    client_ip, get_auth_service, get_current_user, get_mfa_service, get_pending_token,
)
from app.api.v1.auth import login_out
from app.models.user import User
from app.schemas.auth import LoginOut, MessageOut
from app.schemas.mfa import (
    MfaCodeIn, MfaDisableIn, MfaSetupOut, MfaSetupVerifyIn, MfaStatusOut, MfaVerifySetupOut,
)
from app.services.auth import AuthService
from app.services.mfa import MfaService

router = APIRouter(prefix="/mfa", tags=["mfa"])


@router.post("/setup", response_model=MfaSetupOut)
async def setup(
    current_user: User = Depends(get_current_user),
    mfa: MfaService = Depends(get_mfa_service),
):
    result = await mfa.setup_mfa(current_user.id, current_user.email)
    qr_b64 = base64.b64encode(result.qr_code_png).decode("ascii")
    return MfaSetupOut(
        secret=result.secret,
        qr_code=f"data:image/png;base64,{qr_b64}",
        backup_codes=result.backup_codes,
    )


@router.post("/verify-setup", response_model=MfaVerifySetupOut)
async def verify_setup(
    body: MfaSetupVerifyIn,
    current_user: User = Depends(get_current_user),
    mfa: MfaService = Depends(get_mfa_service),
):
    backup_codes = await mfa.verify_mfa_setup(current_user.id, body.code)
    return MfaVerifySetupOut(message="MFA setup verified successfully", backup_codes=backup_codes)


# takes the mfa_pending token from the login response, not an access token
@router.post("/verify", response_model=LoginOut)
async def verify(
    body: MfaCodeIn,
    temporary_token: str = Depends(get_pending_token),
    ip: str = Depends(client_ip),
    auth: AuthService = Depends(get_auth_service),
):
    result = await auth.verify_mfa_login(temporary_token, body.code.strip(), ip)
    return login_out(result)


@router.post("/disable", response_model=MessageOut)
async def disable(
    body: MfaDisableIn,
    current_user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    await auth.disable_mfa(current_user.id, body.password)
    return MessageOut(message="MFA disabled successfully")


@router.get("/status", response_model=MfaStatusOut)
async def status(
    current_user: User = Depends(get_current_user),
    mfa: MfaService = Depends(get_mfa_service),
):
    return MfaStatusOut(mfa_enabled=await mfa.get_mfa_status(current_user.id))
