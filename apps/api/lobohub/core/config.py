from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LOBOHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str
    redis_url: str
    jwt_secret: str
    app_env: str = "development"
    log_level: str = "INFO"
    # IANA zone used for the early bird / night owl hours and streak days.
    timezone: str = "UTC"
    cors_allowed_origins: str = "http://localhost:5173"
    access_token_hours: int = 24 * 7
    account_lock_max_attempts: int = 5
    account_lock_minutes: int = 15
    rate_limit_per_minute: int = 100
    login_rate_limit: int = 10
    invite_code_length: int = 8

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value

    @property
    def allowed_origins(self) -> list[str]:
        return [item.strip() for item in self.cors_allowed_origins.split(",") if item.strip()]


settings = Settings()
