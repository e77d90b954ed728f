# app/core/config.py
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore")

    APP_NAME: str = "Auth Hub"
    LOG_LEVEL: str = "INFO"
    # JSON lines in production, readable console output otherwise
    LOG_JSON: bool = True
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    JWT_SECRET: str = Field(...)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    MFA_PENDING_TOKEN_EXPIRE_MINUTES: int = 10
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60

    BCRYPT_ROUNDS: int = 12

    MFA_ISSUER: str = "AuthHub"
    MFA_BACKUP_CODE_COUNT: int = 10

    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_NAME: str = ""
    # full SQLAlchemy URL, wins over the DB_* parts when set
    DATABASE_URL: str | None = None

    MAIL_HOST: str | None = None
    MAIL_PORT: int = 587
    MAIL_USERNAME: str | None = None
    MAIL_PASSWORD: str | None = None
    MAIL_FROM: str | None = None
    MAIL_USE_TLS: bool = True
    FRONTEND_URL: str = "http://localhost:5173"

    @field_validator("JWT_SECRET")
    @classmethod
    def _secret_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("JWT_SECRET must not be empty")
        return v

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4")


settings = Settings()  # type: ignore[call-arg]
