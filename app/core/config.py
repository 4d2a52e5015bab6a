from typing import Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    mongodb_url: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URL")
    database_name: str = Field(default="blood_link", min_length=1, description="MongoDB database name")

    # App Settings
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    debug: bool = False

    # Frontend (deep links in emails, CORS)
    frontend_url: str = Field(default="http://localhost:3000", description="Frontend application URL")

    # Logging
    log_level: str = "INFO"
    log_json: bool = Field(default=False, description="Emit structured JSON log lines")

    # Broker (Redis Streams)
    redis_url: str = "redis://localhost:6379/0"
    event_bus_enabled: bool = Field(default=True, description="Connect to the broker at startup")
    event_bus_connect_retries: int = Field(default=3, ge=0, le=10, description="Connect attempts after the first one")
    event_bus_retry_backoff_seconds: float = Field(default=0.1, ge=0, le=5, description="Fixed delay between connect attempts")
    event_bus_block_ms: int = Field(default=5000, gt=0, description="Blocking read timeout of the consumer loop")
    event_bus_stream_maxlen: int = Field(default=10000, gt=0, description="Approximate retained log length per topic")
    email_topic: str = Field(default="email-notifications", description="Topic whose messages are forwarded to email")

    # Email
    email_provider: Literal["dev", "smtp"] = "dev"
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    email_from_name: str = "BloodLink"
    email_from_address: str = "no-reply@bloodlink.com"

    # Matching / fan-out
    fanout_concurrency: int = Field(default=10, gt=0, le=200, description="Donors notified in parallel per request")
    donor_cooldown_days: int = Field(default=90, gt=0, le=730, description="Days a donor rests after a confirmed donation")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level

    @field_validator("frontend_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


settings = Settings()
