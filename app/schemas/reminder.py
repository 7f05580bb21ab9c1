import enum
import re
import uuid
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field
from app.schemas.preferences import ProviderType


class ReminderStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    DISMISSED = "dismissed"


class ReminderPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


UNKNOWN_APP = "Unknown app"
_UUID_PREFIX = re.compile(r"^[a-f0-9]{8}-[a-f0-9]{4}")


def is_meaningful_window_name(window_name: Optional[str]) -> bool:
    """Window names that are blank, UUID-like or very long carry no task context."""
    if not window_name or not window_name.strip():
        return False
    if _UUID_PREFIX.match(window_name):
        return False
    return len(window_name) < 50


def new_reminder_id(prefix: str = "reminder") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class ReminderSuggestion(BaseModel):
    """Candidate reminder extracted from model output"""
    title: str
    description: str
    app_name: str = ""
    window_name: str | None = None
    should_remind: bool = True
    confidence: float | None = None
    priority: ReminderPriority = ReminderPriority.MEDIUM
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AnalysisResult(BaseModel):
    """Everything recovered from one model response"""
    reminder_suggestions: list[ReminderSuggestion] = []
    general_insights: list[str] = []


class AppContext(BaseModel):
    app_name: str
    window_name: str = ""


class ReminderItem(BaseModel):
    """Accepted, user-manageable to-do entry"""
    id: str
    title: str
    description: str
    created_at: datetime
    app_context: AppContext | None = None
    status: ReminderStatus = ReminderStatus.PENDING

    @classmethod
    def from_suggestion(cls, suggestion: ReminderSuggestion, now: Optional[datetime] = None) -> "ReminderItem":
        window_name = suggestion.window_name if is_meaningful_window_name(suggestion.window_name) else ""
        return cls(
            id=new_reminder_id(),
            title=suggestion.title,
            description=suggestion.description,
            created_at=now or datetime.now(timezone.utc),
            app_context=AppContext(
                app_name=suggestion.app_name or UNKNOWN_APP,
                window_name=window_name,
            ),
        )


class ReminderCreate(BaseModel):
    """Request model for adding a reminder by hand"""
    title: str = Field(min_length=1)
    description: str = ""
    app_name: str | None = None


class ReminderListResponse(BaseModel):
    reminders: list[ReminderItem]
    count: int


class SettingsOverride(BaseModel):
    """Provider options supplied with a one-shot analysis request"""
    provider_type: ProviderType | None = None
    model: str | None = None
    endpoint_url: str | None = None
    api_key: str | None = None


class AnalysisRequest(BaseModel):
    """One-shot analysis of a posted batch of raw activity items"""
    activities: list[dict]
    prompt: str | None = None
    settings: SettingsOverride | None = None


class AnalysisResponse(BaseModel):
    analysis: str
    suggestions: list[ReminderSuggestion]
    insights: list[str]
    timestamp: datetime
