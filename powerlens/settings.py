from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    cors_allow_origins: list[str] = ["*"]

    # Remote collaborators
    prediction_api_url: str = "http://127.0.0.1:8000"
    backend_api_url: str = "http://localhost:4000/api"
    ai_proxy_url: str = "http://localhost:4000/api/ai"
    request_timeout_seconds: float = 10.0

    # Forecasting
    forecast_months: int = 6
    min_reports_for_forecast: int = 3

    # Local state
    session_path: str = "powerlens_session.json"
    feedback_queue_path: str = "powerlens_feedback_queue.json"
    default_role: str = "Household User"

    log_level: str = "INFO"


settings = AppSettings()
