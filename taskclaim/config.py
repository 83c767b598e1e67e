"""Configuration management using pydantic-settings."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    # Storage Configuration
    database_path: str = Field(default="./data/taskclaim.db", description="DuckDB database file")
    tenants_file: Optional[str] = Field(default=None, description="JSON file used to seed the tenant registry")

    # Scheduler Configuration
    scheduler_enabled: bool = Field(default=True, description="Run the follow-up scheduler in the background")
    scheduler_poll_interval: int = Field(default=300, description="Seconds between follow-up sweeps")
    near_deadline_lead_hours: int = Field(default=24, description="Hours before the deadline for the near-deadline reminder")
    pending_delivery_timeout: int = Field(default=900, description="Seconds after which an unconfirmed delivery or a stalled search is recovered")

    # Conversation Configuration
    max_candidate_attempts: int = Field(default=5, description="Upper bound on owner candidates tried per assignment")

    # Collaborator Configuration
    collaborator_retry_attempts: int = Field(default=3, description="Attempts per collaborator call")
    collaborator_retry_base_delay: float = Field(default=0.5, description="Initial backoff delay in seconds")
    collaborator_retry_max_delay: float = Field(default=8.0, description="Maximum backoff delay in seconds")
    http_timeout: float = Field(default=10.0, description="HTTP timeout for collaborator APIs in seconds")

    slack_api_base: str = Field(default="https://slack.com/api", description="Slack Web API base URL")
    sheets_api_base: str = Field(default="https://sheets.googleapis.com/v4", description="Google Sheets API base URL")
    sheets_tab: str = Field(default="Ticket Queue", description="Sheet tab holding the task-owner mapping")
    asana_api_base: str = Field(default="https://app.asana.com/api/1.0", description="Asana API base URL")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_file: Optional[str] = Field(default="./logs/app.log", description="Log file path")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, description="Rotate the log file at this size (0 disables rotation)")
    log_backup_count: int = Field(default=5, description="Rotated log files to keep")

    @property
    def near_deadline_lead_seconds(self) -> int:
        """Near-deadline lead time in seconds."""
        return self.near_deadline_lead_hours * 3600

    def retry_options(self) -> dict:
        """Keyword arguments for call_with_retry."""
        return {
            "attempts": self.collaborator_retry_attempts,
            "base_delay": self.collaborator_retry_base_delay,
            "max_delay": self.collaborator_retry_max_delay,
        }


# Global settings instance
settings = Settings()
