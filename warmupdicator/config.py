from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Master switch; when off, no checks are registered and the run converges immediately
    warmup_enabled: bool = True

    # Include per-check detail strings in the health endpoint
    warmup_show_details: bool = False

    # Endpoint / model warmer definitions (absolute or relative to CWD)
    warmup_config_file: str = "warmupdicator.yaml"

    # Individual warmers
    endpoint_warmer_enabled: bool = True
    model_warmer_enabled: bool = False

    # Thread pool size for a round (0 = executor default)
    warmup_max_workers: int = 0

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"


settings = Settings()
