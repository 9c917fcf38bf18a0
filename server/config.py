"""Server configuration for the vegetation health agent"""
from pathlib import Path

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Server and agent settings, read from the environment / .env"""

    # Server
    host: str = "127.0.0.1"
    port: int = 8766
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://127.0.0.1:8766", "http://localhost:8766"]
    max_connections: int = 50

    # Optional static UI
    project_root: Path = Path(__file__).parent.parent
    frontend_dir: Path = project_root / "frontend"

    # Language model: "gemini" or anything else for OpenAI
    ai_provider: str = Field(default="gemini", validation_alias="ACTIVE_AI_PROVIDER")
    gemini_model: str = "gemini-2.0-flash"
    openai_model: str = "gpt-4o"

    # Agent loop
    max_steps: int = Field(default=5, ge=1)
    request_timeout_seconds: float = Field(default=60.0, gt=0)

    # renderImage output size in pixels
    image_width: int = Field(default=512, ge=64, le=1024)
    image_height: int = Field(default=512, ge=64, le=1024)

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore"  # .env also holds provider credentials
    )

    @field_validator("ai_provider")
    @classmethod
    def _normalize_provider(cls, value: str) -> str:
        return value.strip().lower()


settings = Settings()
