"""Application settings loaded from environment variables."""
import os
from functools import lru_cache

from pydantic import BaseModel, Field


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    """Runtime settings for SARMS Core."""

    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    tracking_prefix: str = Field("REQ", min_length=1)
    default_page_size: int = Field(50, ge=1)
    max_page_size: int = Field(100, ge=1)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            cors_origins=_split_csv(os.getenv("SARMS_CORS_ORIGINS", "*")),
            log_level=os.getenv("SARMS_LOG_LEVEL", "INFO").upper(),
            tracking_prefix=os.getenv("SARMS_TRACKING_PREFIX", "REQ"),
            default_page_size=int(os.getenv("SARMS_DEFAULT_PAGE_SIZE", "50")),
            max_page_size=int(os.getenv("SARMS_MAX_PAGE_SIZE", "100")),
        )


@lru_cache
def get_settings() -> Settings:
    """Settings for this process, read once from the environment."""
    return Settings.from_env()
