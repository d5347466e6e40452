"""Configuration for Taskflow."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_SESSION_MS = 8 * 60 * 60 * 1000


class Config(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(env_prefix="TASKFLOW_")

    storage_dir: str = Field(default=".taskflow")
    max_session_ms: int = Field(default=MAX_SESSION_MS, gt=0)
    cap_check_interval_seconds: float = Field(default=60.0, ge=0)
    seed_default_tasks: bool = Field(default=True)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO")
