from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App settings
    app_name: str = "Geo Analysis Service"
    app_version: str = "1.0.0"
    environment: str = "development"

    # API security
    api_key: str = ""

    # LLM provider: anthropic, openai or ollama
    llm_provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.1"
    max_tokens: int = 8000
    temperature: float = 0.3
    status_max_tokens: int = 10

    # File storage
    reports_dir: str = "./reports"
    save_error_reports: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: str = ""

    # Rate limiting (per client IP, fixed window)
    rate_limit_window_seconds: int = 900
    rate_limit_max_requests: int = 10

    cors_origins: str = "*"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def reports_path(self) -> Path:
        return Path(self.reports_dir).expanduser().resolve()

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def llm_model(self) -> str:
        """Model name of the configured provider."""
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "ollama": self.ollama_model,
        }.get(self.llm_provider, "")


@lru_cache
def get_settings() -> Settings:
    return Settings()
