from app.models.user import User
from app.models.refresh_token import RefreshToken
from app.models.mfa_settings import MfaSettings
