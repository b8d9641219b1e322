"""
Configuration management for the Visit Agenda engine.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

from functools import lru_cache
from typing import Literal, Optional
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # API Configuration
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )
    api_reload: bool = Field(
        default=True,
        description="Enable auto-reload in development"
    )

    # Locale & Timezone
    timezone: str = Field(
        default="Europe/Paris",
        description="Timezone used to interpret dictated dates (IANA name)"
    )
    locale: Literal["fr", "en"] = Field(
        default="fr",
        description="Language of dictated appointments"
    )

    # Webhook collaborators
    webhook_base_url: str = Field(
        default="http://localhost:5678/webhook",
        description="Base URL of the automation server exposing the agenda webhooks"
    )
    extraction_path: str = Field(
        default="/odoo-calendar-nlp",
        description="Extraction service (text -> event guess)"
    )
    directory_path: str = Field(
        default="/GetParticipants",
        description="Directory service (contact list)"
    )
    availability_path: str = Field(
        default="/check-availability",
        description="Availability service (busy/free for a window)"
    )
    find_event_path: str = Field(
        default="/FindEvent",
        description="Event lookup by original start + participants"
    )
    create_event_path: str = Field(
        default="/CreateCalendarEvent",
        description="Calendar mutation: create"
    )
    update_event_path: str = Field(
        default="/update-event",
        description="Calendar mutation: update"
    )
    delete_event_path: str = Field(
        default="/DeleteCalendarEvent",
        description="Calendar mutation: delete"
    )
    create_contact_path: str = Field(
        default="/CreateNewContact",
        description="Contact creation service"
    )
    webhook_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Per-call HTTP timeout for webhook collaborators (seconds)"
    )
    webhook_read_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts for idempotent read calls (directory, extraction, lookup)"
    )
    request_deadline_seconds: float = Field(
        default=25.0,
        gt=0,
        description="Overall deadline for one prepare/confirm request (seconds)"
    )

    # Participant matching
    match_threshold: float = Field(
        default=0.65,
        ge=0.0,
        le=1.0,
        description="Minimum score for a directory entry to count as a match"
    )
    ambiguity_margin: float = Field(
        default=0.10,
        ge=0.0,
        le=1.0,
        description="Minimum lead of the best match over the runner-up"
    )
    match_top_n: int = Field(
        default=5,
        ge=1,
        description="Number of ranked candidates kept per participant mention"
    )

    # Event defaults
    default_duration_minutes: int = Field(
        default=60,
        gt=0,
        description="Duration applied when only a start time is known"
    )
    organizer_partner_id: int = Field(
        default=3,
        description="Calendar owner id sent with every created event"
    )
    default_event_title: str = Field(
        default="Rendez-vous",
        description="Title used when the dictation carries none"
    )

    # Availability search
    availability_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum availability checks per confirmation"
    )
    availability_step_minutes: Optional[int] = Field(
        default=None,
        gt=0,
        description="Shift applied after a conflict (defaults to the event duration)"
    )
    availability_call_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Timeout of a single availability check (seconds)"
    )
    working_hours_start: Optional[int] = Field(
        default=8,
        ge=0,
        le=23,
        description="Earliest hour a suggested slot may start (None disables)"
    )
    working_hours_end: Optional[int] = Field(
        default=20,
        ge=1,
        le=24,
        description="Latest hour a suggested slot may end (None disables)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.python_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone object for the configured IANA name."""
        return ZoneInfo(self.timezone)

    @property
    def working_hours(self) -> Optional[tuple[int, int]]:
        """Working hours window, or None when either bound is disabled."""
        if self.working_hours_start is None or self.working_hours_end is None:
            return None
        return (self.working_hours_start, self.working_hours_end)

    def webhook_url(self, path: str) -> str:
        """Join the webhook base URL with a collaborator path."""
        return f"{self.webhook_base_url.rstrip('/')}/{path.lstrip('/')}"

    def validate_production_config(self) -> None:
        """
        Validate configuration for production environment.

        Raises:
            ValueError: If required production settings are missing or invalid
        """
        if not self.is_production:
            return

        errors = []

        if "localhost" in self.webhook_base_url or "127.0.0.1" in self.webhook_base_url:
            errors.append(
                "Production requires a reachable automation server. "
                "Set WEBHOOK_BASE_URL."
            )

        if not self.webhook_base_url.startswith("https://"):
            errors.append("WEBHOOK_BASE_URL must use https in production.")

        if self.working_hours is not None and self.working_hours_start >= self.working_hours_end:
            errors.append("WORKING_HOURS_START must be before WORKING_HOURS_END.")

        if errors:
            raise ValueError("Production configuration errors:\n- " + "\n- ".join(errors))


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.
    Use this function throughout the application to access settings.

    Returns:
        Settings instance loaded from environment

    Example:
        >>> from visit_agenda.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.match_threshold)
    """
    return Settings()
