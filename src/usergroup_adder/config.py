"""Configuration for the usergroup adder service."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict, SettingsError

# Raised by Settings() for a malformed environment value.
SETTINGS_ERRORS = (ValidationError, SettingsError)


class MemberCleanup(str, Enum):
    """Which existing usergroup members are dropped when the list is rewritten."""

    NONE = "none"
    BOT_ONLY = "bot_only"
    NON_HUMAN = "non_human"


class WelcomeLanguage(str, Enum):
    EN = "en"
    NO = "no"


def split_ids(raw: str) -> List[str]:
    """Split a comma-separated id list, trimming whitespace and dropping empties."""
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


class Settings(BaseSettings):
    """Service settings, read from the environment (and ``.env`` if present)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    service_name: str = "usergroup-adder"

    # Slack credentials
    slack_signing_secret: str = ""
    slack_bot_token: str = ""
    bot_user_id: str = ""

    # Targets (comma-separated ids)
    usergroup_ids: str = ""
    channel_ids: str = ""

    # Side effects
    member_cleanup: MemberCleanup = MemberCleanup.BOT_ONLY
    check_user_active: bool = True
    enable_channel_invites: bool = False
    enable_welcome_message: bool = False
    welcome_language: WelcomeLanguage = WelcomeLanguage.EN
    welcome_message_template: str = ""
    usergroup_descriptions: Dict[str, str] = {}

    # Windows
    dedup_window_seconds: int = 30
    dedup_max_entries: int = 10000
    signature_max_age_seconds: int = 300

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def usergroup_id_list(self) -> List[str]:
        return split_ids(self.usergroup_ids)

    @property
    def channel_id_list(self) -> List[str]:
        return split_ids(self.channel_ids)

    @property
    def token_type(self) -> str:
        if self.slack_bot_token.startswith("xoxp"):
            return "user"
        if self.slack_bot_token.startswith("xoxb"):
            return "bot"
        return "unknown"


def get_settings() -> Settings:
    """
    Load settings from the environment.

    Uncached: every request reads the current environment.
    """
    return Settings()
