"""Application configuration."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Remote progress store
    api_base_url: str = os.getenv("API_BASE_URL", "http://localhost:3000")
    api_token: str = os.getenv("API_TOKEN", "")
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "20"))

    # Durable bearer token slot
    credentials_path: str = os.getenv("CREDENTIALS_PATH", "data/credentials.db")

    # Aggregation
    aggregate_window_days: int = int(os.getenv("AGGREGATE_WINDOW_DAYS", "7"))
    history_days: int = int(os.getenv("HISTORY_DAYS", "30"))
    step_credit_completed: int = Field(default=int(os.getenv("STEP_CREDIT_COMPLETED", "10000")), ge=0)
    step_credit_partial: int = Field(default=int(os.getenv("STEP_CREDIT_PARTIAL", "5000")), ge=0)

    # Server
    server_host: str = os.getenv("SERVER_HOST", "0.0.0.0")
    server_port: int = int(os.getenv("SERVER_PORT", "8000"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = False


settings = Settings()
