import enum
from pydantic import BaseModel, Field


class ProviderType(str, enum.Enum):
    LOCAL_MODEL = "local-model"
    OPENAI_COMPATIBLE = "openai-compatible"


DEFAULT_MODELS = {
    ProviderType.LOCAL_MODEL: "llama3.2:latest",
    ProviderType.OPENAI_COMPATIBLE: "gpt-3.5-turbo",
}


class UserSettings(BaseModel):
    """Provider and cadence settings chosen by the user"""
    provider_type: ProviderType = ProviderType.LOCAL_MODEL
    model: str = DEFAULT_MODELS[ProviderType.LOCAL_MODEL]
    endpoint_url: str = ""
    api_key: str | None = None
    analysis_frequency_minutes: int = Field(default=5, ge=1, le=10)
    notification_frequency_minutes: int = Field(default=30, ge=1)


class UserSettingsUpdate(BaseModel):
    """Request model for updating user settings"""
    provider_type: ProviderType | None = None
    model: str | None = None
    endpoint_url: str | None = None
    api_key: str | None = None
    analysis_frequency_minutes: int | None = Field(default=None, ge=1, le=10)
    notification_frequency_minutes: int | None = Field(default=None, ge=1)


class UserSettingsResponse(BaseModel):
    """Settings as shown to clients (API key withheld)"""
    provider_type: ProviderType
    model: str
    endpoint_url: str
    api_key_set: bool
    analysis_frequency_minutes: int
    notification_frequency_minutes: int
