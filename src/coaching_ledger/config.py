"""Application configuration."""

import os
from datetime import timedelta
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from coaching_ledger.domain.lifecycle import DeadlinePolicy

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    admin_token: str
    storage_backend: Literal["memory", "supabase"] = "memory"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    mentor_response_hours: int = 24
    followup_window_hours: int = 48
    followup_reply_hours: int = 24
    default_session_cost: int = 10
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def deadline_policy(self) -> DeadlinePolicy:
        """Build the deadline policy from the configured hour windows."""
        return DeadlinePolicy(
            mentor_response=timedelta(hours=self.mentor_response_hours),
            followup_window=timedelta(hours=self.followup_window_hours),
            followup_reply=timedelta(hours=self.followup_reply_hours),
        )
