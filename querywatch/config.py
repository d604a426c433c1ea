from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "QUERYWATCH_",
        "extra": "ignore",
    }

    # Storage
    checks_db_path: str = "data/checks.db"

    # Evaluation
    timeout_threshold: int = 3  # consecutive timeouts before a check is disabled
    sample_row_limit: int = 10  # rows included in report notifications
    anomaly_threshold: float = 3.0
    anomaly_min_points: int = 8
    runner_workers: int = 4

    # Links back to the UI in notifications
    base_url: str = "http://localhost:8000"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"

    # Chat (Slack), disabled when no webhook is set
    slack_webhook_url: str = ""

    # Email (SMTP), disabled when no host is set
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    email_from: str = "checks@localhost"

    # Event publisher for per-user alert fanout
    event_publisher_url: str = ""
    event_publisher_token: str = ""

    @property
    def slack_enabled(self) -> bool:
        return bool(self.slack_webhook_url)


settings = Settings()
