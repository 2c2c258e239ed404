import secrets
import warnings
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings


# Insecure default values that should never be used in production
INSECURE_JWT_SECRETS = {
    "CHANGE_ME_TO_RANDOM_SECRET_KEY",
    "secret",
    "your-secret-key",
    "changeme",
    "password",
    "",
}


class Settings(BaseSettings):
    PROJECT_NAME: str = "Minutes Workflow Service"
    API_V1_PREFIX: str = "/api/v1"

    # ===========================================
    # Environment Mode
    # ===========================================
    ENV: Literal["development", "production"] = "development"

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite:///./minutesflow.db"

    # ===========================================
    # Authentication
    # ===========================================
    JWT_SECRET_KEY: str = "CHANGE_ME_TO_RANDOM_SECRET_KEY"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    # ===========================================
    # Workflow Execution
    # ===========================================
    # "immediate": collection calls complete inline
    # "deferred": collection calls complete later on a worker thread
    WORKFLOW_EXECUTION_MODE: Literal["immediate", "deferred"] = "immediate"
    DEFERRED_MAX_WORKERS: int = 4

    # ===========================================
    # Mail Delivery
    # ===========================================
    ENABLE_MAIL_DELIVERY: bool = False
    DEFAULT_EMAIL_SENDER_ADDRESS: str = "noreply@minutesflow.local"
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = False
    SMTP_TIMEOUT: int = 30  # seconds

    # ===========================================
    # Celery
    # ===========================================
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Validate JWT secret key for security."""
        if v in INSECURE_JWT_SECRETS:
            import os
            if os.getenv("ENV", "development") == "production":
                raise ValueError(
                    "JWT_SECRET_KEY must be set to a secure random value in production. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
            # Development mode: generate temporary key with warning
            warnings.warn(
                "Using auto-generated JWT_SECRET_KEY. Set JWT_SECRET_KEY in .env for production.",
                UserWarning,
            )
            return secrets.token_hex(32)

        if len(v) < 32:
            raise ValueError(
                "JWT_SECRET_KEY must be at least 32 characters long for security. "
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )
        return v

    def is_email_delivery_enabled(self) -> bool:
        return self.ENABLE_MAIL_DELIVERY

    def get_default_email_sender_address(self) -> str:
        return self.DEFAULT_EMAIL_SENDER_ADDRESS

    class Config:
        env_file = ".env"


settings = Settings()
