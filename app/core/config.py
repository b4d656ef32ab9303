from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60 * 24, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Paynow integration credentials and callback destinations
    paynow_integration_id: str = Field("", alias="PAYNOW_INTEGRATION_ID")
    paynow_integration_key: str = Field("", alias="PAYNOW_INTEGRATION_KEY")
    paynow_return_url: str = Field("http://localhost:8000/api/v1/payments/return", alias="PAYNOW_RETURN_URL")
    paynow_result_url: str = Field("http://localhost:8000/api/v1/payments/webhook", alias="PAYNOW_RESULT_URL")
    paynow_initiate_url: str = Field(
        "https://www.paynow.co.zw/interface/initiatetransaction", alias="PAYNOW_INITIATE_URL"
    )
    paynow_timeout_seconds: float = Field(30.0, alias="PAYNOW_TIMEOUT_SECONDS")

    # Days until an auto-created fee record falls due
    fee_due_days: int = Field(30, alias="FEE_DUE_DAYS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    admin_email: Optional[str] = Field(None, alias="ADMIN_EMAIL")
    admin_password: Optional[str] = Field(None, alias="ADMIN_PASSWORD")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
