"""
JiraBot - Configuration Management
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import FrozenSet


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    fastapi_env: str = "development"
    fastapi_host: str = "0.0.0.0"
    fastapi_port: int = 8000

    # Chat
    bot_name: str = "jirabot"

    # Jira
    jira_url: str = ""
    jira_username: str = ""
    jira_password: str = ""
    jira_use_v2: bool = False  # legacy (.value wrapped) issue schema
    jira_maxlist: int = Field(10, ge=0)
    jira_issue_delay: int = Field(10, ge=0)  # dedup window, seconds
    jira_ignore_users: str = ""  # Comma-separated usernames
    jira_timeout_seconds: float = 30.0
    jira_max_retries: int = Field(3, ge=1)

    # Persistence
    brain_backend: str = "memory"  # memory | supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def JIRA_BASE_URL(self) -> str:
        """Tracker base URL without a trailing slash"""
        return self.jira_url.rstrip("/")

    @property
    def IGNORED_USERS(self) -> FrozenSet[str]:
        """Usernames whose messages are never scanned"""
        return frozenset(
            user.strip() for user in self.jira_ignore_users.split(",") if user.strip()
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
