"""Pydantic Settings loaded from environment."""
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    supabase_url: str = ""
    supabase_anon_key: str = ""
    data_source: Literal["live", "fixture"] = "fixture"
    storage_backend: Literal["supabase", "local"] = "local"
    storage_bucket: str = "incident-images"
    upload_dir: str = "/tmp/safewatch-uploads"
    media_base_url: str = ""  # Empty: local uploads get a site-relative /api/upload/... URL
    sign_in_url: str = "/auth"
    recent_limit: int = 20
    session_secret: str = "safewatch-dev-secret"
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    http_timeout: float = 15.0
    log_level: str = "INFO"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


settings = Settings()
