from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process-wide configuration, loaded once at startup.

    Frozen so nothing can mutate the signing secret or token lifetimes
    after the app has been built. Rotating SECRET_KEY means redeploying
    with a new value.
    """
    model_config = SettingsConfigDict(env_file=".env", frozen=True, extra="ignore")

    ENV: str = "development"

    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    TOKEN_RETENTION_DAYS: int = 30

    # Password policy
    BCRYPT_ROUNDS: int = 10
    PASSWORD_MIN_LENGTH: int = 8

    # Compatibility switches
    ALLOW_LEGACY_REFRESH_FALLBACK: bool = False
    REVOKE_SESSIONS_ON_PASSWORD_CHANGE: bool = False

    FRONTEND_URL: str = "http://localhost:3000"
    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_FROM: str = "no-reply@safehaven.local"
    MAIL_SERVER: str = "localhost"
    MAIL_PORT: int = 587

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    RATE_LIMIT_DEFAULT: str = "200/hour"

    @property
    def is_testing(self) -> bool:
        return self.ENV == "testing"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
