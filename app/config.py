from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./smart_reminder.db"
    debug: bool = False
    cors_origins: list[str] = ["*"]

    # Activity capture service
    activity_source_url: str = "http://localhost:3030"
    activity_content_type: str = "audio+ocr"
    activity_query_limit: int = 50
    activity_timeout_seconds: float = 10.0

    # Session cadence
    fetch_interval_seconds: float = 10.0
    initial_fetch_delay_seconds: float = 1.0
    default_analysis_frequency_minutes: int = 5
    default_notification_frequency_minutes: int = 30
    app_history_limit: int = 1000

    # AI Configuration
    default_provider_type: str = "local-model"
    default_model: str = "llama3.2:latest"
    local_model_url: str = "http://localhost:11434/api/generate"
    openai_url: str = "https://api.openai.com/v1/chat/completions"
    ai_timeout_seconds: float = 60.0
    ai_max_tokens: int = 500
    ai_temperature: float = 0.7

    # Prompt building
    prompt_format: str = "json"
    prompt_max_samples: int = 20
    prompt_text_prefix: int = 30
    prompt_aggregate: bool = True
    brief_interaction_seconds: float = 20.0

    # Response filtering
    min_description_length: int = 20
    min_confidence: float = 0.7
    default_should_remind: bool = True

    # Collaborators
    activity_log_url: Optional[str] = None
    remote_settings_url: Optional[str] = None

    class Config:
        env_file = ".env"


settings = Settings()
