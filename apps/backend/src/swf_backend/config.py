from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ------------------------------------------------------------------
    # Workflow engine (Kogito serverless workflow service)
    # ------------------------------------------------------------------
    swf_base_url: str = "http://localhost"
    swf_port: int = 8899
    swf_resources_dir: str = "workflows"  # *.sw.json, specs/, schemas/

    # ------------------------------------------------------------------
    # Scaffolder actions API
    # ------------------------------------------------------------------
    scaffolder_base_url: str = "http://localhost:7007/api/scaffolder"

    # ------------------------------------------------------------------
    # GitHub credentials (template discovery for fetch:template actions)
    # ------------------------------------------------------------------
    github_token: Optional[str] = None      # ghp_... optional, raises rate limits
    github_api_url: str = "https://api.github.com"
    github_max_concurrency: int = 8

    # ------------------------------------------------------------------
    # Outbound HTTP
    # ------------------------------------------------------------------
    http_timeout_seconds: float = 30.0
    retry_backoff_seconds: float = 5.0
    retry_max_errors: int = 15

    # ------------------------------------------------------------------
    # Catalog entity provider
    # ------------------------------------------------------------------
    catalog_polling_enabled: bool = True
    catalog_refresh_interval_seconds: float = 600.0
    catalog_env: str = "development"
    catalog_owner: str = "swf@example.com"

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def engine_url(self) -> str:
        return f"{self.swf_base_url.rstrip('/')}:{self.swf_port}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
