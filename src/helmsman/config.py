"""
Helmsman Configuration

Runtime settings loaded from environment variables. Values are validated
by pydantic at startup so a bad deployment fails loudly instead of at the
first approval.

Environment variables:
    HELMSMAN_DB_URL / DATABASE_URL   Database URL or SQLite path (default: helmsman.db)
    HELMSMAN_HOST                    API bind address (default: 127.0.0.1)
    HELMSMAN_PORT                    API port (default: 3000)
    HELMSMAN_DETECT_TIMEOUT          Per-tool detection timeout, seconds (default: 15)
    HELMSMAN_COMMAND_TIMEOUT         Default shell command timeout, seconds (default: 30)
    HELMSMAN_LOG_LEVEL               Log level (default: INFO)
    HELMSMAN_LOG_JSON                Emit JSON logs (default: false)
    HELMSMAN_SCAN_ON_STARTUP         Detect tools when the API starts (default: true)
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field

DEFAULT_DB_URL = "helmsman.db"


class Settings(BaseModel):
    """Service configuration."""

    db_url: str = DEFAULT_DB_URL
    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=1, le=65535)
    detect_timeout: float = Field(default=15.0, gt=0.0, le=300.0)
    command_timeout: float = Field(default=30.0, gt=0.0, le=3600.0)
    log_level: str = "INFO"
    log_json: bool = False
    scan_on_startup: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Unset variables fall back to the field defaults. Raises
        ``pydantic.ValidationError`` if a value cannot be coerced.
        """
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}

        db_url = env.get("HELMSMAN_DB_URL") or env.get("DATABASE_URL")
        if db_url:
            values["db_url"] = db_url

        mapping = {
            "HELMSMAN_HOST": "host",
            "HELMSMAN_PORT": "port",
            "HELMSMAN_DETECT_TIMEOUT": "detect_timeout",
            "HELMSMAN_COMMAND_TIMEOUT": "command_timeout",
            "HELMSMAN_LOG_LEVEL": "log_level",
            "HELMSMAN_LOG_JSON": "log_json",
            "HELMSMAN_SCAN_ON_STARTUP": "scan_on_startup",
        }
        for var, field in mapping.items():
            if env.get(var):
                values[field] = env[var]

        return cls.model_validate(values)
