from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",   # ignore unknown keys in .env
    )

    DATABASE_URL: str = "sqlite+aiosqlite:///./leisure_coupons.db"
    DB_TIMEOUT_SECONDS: float = 5.0
    DB_AUTO_CREATE: bool = True

    COUPON_CODE_MAX_ATTEMPTS: int = 5

    # stand-in until reservations are linked to products explicitly
    ELIGIBLE_PRODUCT_LIMIT: int = 3

    SERVICE_TIMEZONE: str = "Asia/Seoul"

    QR_RENDER_SIZE: int = 200
    QR_ENCRYPTED_PAYLOAD: bool = False
    QR_ENCRYPTION_KEY: str | None = None

    CORS_ALLOW_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    LOG_LEVEL: str = "INFO"

    @model_validator(mode="after")
    def _check_qr_encryption(self) -> "Settings":
        if self.QR_ENCRYPTED_PAYLOAD and not self.QR_ENCRYPTION_KEY:
            raise ValueError("QR_ENCRYPTED_PAYLOAD is enabled but QR_ENCRYPTION_KEY is not set")
        return self

    def cors_origins(self) -> list[str]:
        raw = (self.CORS_ALLOW_ORIGINS or "").strip()
        if raw == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]


settings = Settings()
