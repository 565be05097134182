"""Configuration load/save for the deadline manager."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

CONFIG_PATH = Path(os.environ.get("DEADLINES_CONFIG") or Path(__file__).resolve().parent / "config.json")


class AppConfig(BaseModel):
    """Persisted application configuration."""

    debug: bool = Field(default=False, description="Log every API request")
    storage_mode: Literal["database", "local"] = Field(
        default="database",
        description="database = per-user SQLite backend behind sign-in; local = no-login JSON store",
    )
    database_path: str = Field(default="", description="Path to SQLite database file; empty = project dir / deadlines.db")
    local_store_path: str = Field(default="", description="Path to the no-login JSON store; empty = project dir / local_store.json")
    web_ui_port: int = Field(default=8081, ge=1, le=65535, description="Port for the web UI")
    user_timezone: str = Field(default="Asia/Tokyo", description="IANA timezone used for 'today' in the web UI")
    environment: Literal["development", "production"] = Field(default="development")
    cron_secret: str = Field(default="", description="Bearer token required by the digest endpoint in production")
    slack_webhook_url: str = Field(default="", description="Incoming webhook URL for the daily digest")
    digest_timezone: str = Field(default="Asia/Tokyo", description="Timezone used to compute the digest's 'today'")
    digest_priorities: list[str] = Field(default_factory=lambda: ["A"], description="Priorities included in the digest")
    digest_cron: str = Field(default="", description="5-field cron for the in-process digest; empty = disabled")
    history_limit: int = Field(default=50, ge=1, description="Maximum undo snapshots kept per user")
    session_cookie_name: str = Field(default="deadlines_session")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def to_save_dict(self) -> dict[str, Any]:
        return self.model_dump()

    @classmethod
    def load(cls) -> "AppConfig":
        if not CONFIG_PATH.exists():
            return cls()
        raw = json.loads(CONFIG_PATH.read_text())
        return cls.model_validate(raw)

    def save(self) -> None:
        CONFIG_PATH.write_text(json.dumps(self.to_save_dict(), indent=2))


def load() -> AppConfig:
    """Load config from disk. Convenience alias for AppConfig.load()."""
    return AppConfig.load()
