from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Defaults for the devloop CLI.

    Values come from ``DEVLOOP_*`` environment variables or a project ``.env``
    file. Command line options always take precedence.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    debounce_ms: int = Field(
        default=200,
        gt=0,
        description="Quiet period after the last change before restarting, in milliseconds",
        validation_alias="DEVLOOP_DEBOUNCE_MS",
    )

    grace_period: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait for a graceful exit before killing the process group",
        validation_alias="DEVLOOP_GRACE_PERIOD",
    )

    stop_signal: str = Field(
        default="SIGTERM",
        description="Signal sent to the process group to request a graceful stop",
        validation_alias="DEVLOOP_STOP_SIGNAL",
    )

    ignore: str = Field(
        default=".git,.hg,.svn,__pycache__,node_modules",
        description="Comma separated path components that never trigger a restart",
        validation_alias="DEVLOOP_IGNORE",
    )

    poll_interval: float = Field(
        default=0.2,
        gt=0,
        description="How often the loop checks for a child that exited on its own, in seconds",
        validation_alias="DEVLOOP_POLL_INTERVAL",
    )

    @property
    def ignore_patterns(self) -> list[str]:
        """The ignore list split into individual fnmatch patterns."""
        return [part.strip() for part in self.ignore.split(",") if part.strip()]


settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
