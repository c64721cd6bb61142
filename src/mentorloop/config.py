from datetime import time

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MENTORLOOP_",
        case_sensitive=False,
    )

    # App
    env: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./mentorloop.db"

    # Clock
    timezone: str = "America/Mexico_City"

    # Call types
    discipline_window_start: time = time(5, 0)
    discipline_window_end: time = time(8, 0)
    discipline_slot_minutes: int = 15
    mentorship_slot_minutes: int = 60
    max_session_minutes: int = 240
    max_slot_range_days: int = 62

    # Recurring commitments
    max_missed_allowed: int = 3
    program_default_weeks: int = 17
    subscription_days: int = 120

    # Mentorship requests
    mentorship_request_ttl_hours: int = 48

    # Tasks
    postpone_alert_threshold: int = 2

    # Rewards
    reward_points_attended: int = 10
    reward_points_mentorship: int = 25

    # Notifications
    notify_webhook_url: str = ""
    notify_timeout_seconds: float = 5.0


def get_settings() -> Settings:
    return Settings()
