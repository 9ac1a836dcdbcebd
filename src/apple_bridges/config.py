from __future__ import annotations

import logging
from datetime import time
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BridgeSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="apple_bridges_",
        extra="ignore",
        env_file=".env",
    )

    log_level: str = "WARNING"

    # osascript limits; fetches walk whole lists/calendars and get more time
    osascript_timeout_seconds: float = Field(default=30.0, gt=0)
    fetch_timeout_seconds: float = Field(default=60.0, gt=0)

    # Notes defaults (used when the account/folder argument is omitted)
    notes_default_account: str = "iCloud"
    notes_default_folder: str = "Notes"

    # Mail defaults
    mail_default_mailbox: str = "INBOX"
    mail_list_count: int = Field(default=20, ge=1)

    # Calendar: working window for free-slots, search window, week length
    calendar_work_day_start: time = time(9, 0)
    calendar_work_day_end: time = time(18, 0)
    calendar_min_slot_minutes: int = Field(default=15, ge=0)
    calendar_search_days_back: int = Field(default=30, ge=0)
    calendar_search_days_ahead: int = Field(default=90, ge=1)
    calendar_week_days: int = Field(default=7, ge=1)

    # tmux
    tmux_command: str = "tmux"
    tmux_timeout_seconds: float = Field(default=10.0, gt=0)
    tmux_read_lines: int = Field(default=1000, ge=1)
    tmux_snapshot_lines: int = Field(default=5000, ge=1)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            level = value.strip().upper()
            if level not in logging.getLevelNamesMapping():
                raise ValueError(f"unknown log level: {value!r}")
            return level
        return value

    @field_validator("calendar_work_day_start", "calendar_work_day_end", mode="before")
    @classmethod
    def _parse_clock_time(cls, value: Any) -> Any:
        """Accept ``HH:MM`` strings as well as ``time`` objects."""
        if isinstance(value, str):
            hours, _, minutes = value.strip().partition(":")
            return time(int(hours), int(minutes or 0))
        return value

    @model_validator(mode="after")
    def _check_work_day(self) -> BridgeSettings:
        if self.calendar_work_day_end <= self.calendar_work_day_start:
            raise ValueError("calendar_work_day_end must be after calendar_work_day_start")
        return self
