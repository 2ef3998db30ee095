"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "recruitment_system"
    mongodb_timeout_ms: int = 5000

    # DeepSeek AI (OpenAI-compatible), optional resume parser
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    deepseek_model: str = "deepseek-chat"

    # JWT Auth
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7

    # Resume uploads
    upload_dir: str = "uploads"
    max_resume_size_mb: int = 5

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    frontend_url: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # App
    debug: bool = False

    @property
    def max_resume_size_bytes(self) -> int:
        return self.max_resume_size_mb * 1024 * 1024

    @property
    def allowed_origins(self) -> List[str]:
        """CORS origins plus the deployed frontend, when configured."""
        origins = list(self.cors_origins)
        if self.frontend_url:
            origins.append(self.frontend_url)
        return origins

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
