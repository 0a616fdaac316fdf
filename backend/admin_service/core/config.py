from __future__ import annotations

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    # Core
    DATABASE_URL: str = "sqlite:///./admin_service.db"
    ALLOWED_ORIGINS: str | None = "http://localhost:3000"
    SQL_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    # Name constraints for catalog entities
    FEATURE_NAME_MAX_LENGTH: int = 50
    MODULE_NAME_MAX_LENGTH: int = 50
    PLAN_NAME_MAX_LENGTH: int = 100

    @property
    def cors_origins(self) -> List[str]:
        if not self.ALLOWED_ORIGINS:
            return []
        raw = self.ALLOWED_ORIGINS
        if isinstance(raw, str):
            return [o.strip() for o in raw.split(",") if o.strip()]
        return list(raw)


settings = Settings()
