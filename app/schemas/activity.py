import logging
from datetime import datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

VOICE_APP_NAME = "Voice"
VOICE_WINDOW_NAME = "Voice Command"


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps from the capture service as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


class ActivitySample(BaseModel):
    """One observed moment of foreground app/window/text activity."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    app_name: str = ""
    window_name: str = ""
    text: Optional[str] = None

    @classmethod
    def from_raw(cls, item: Any) -> Optional["ActivitySample"]:
        """Normalize a raw search result item, or None when it has no usable timestamp."""
        if not isinstance(item, dict):
            return None
        content = item.get("content", item)
        if not isinstance(content, dict) or not content.get("timestamp"):
            logger.debug("Skipping activity item without timestamp: %r", item)
            return None

        if content.get("transcription") is not None:
            fields = {
                "app_name": VOICE_APP_NAME,
                "window_name": VOICE_WINDOW_NAME,
                "text": content.get("transcription"),
            }
        else:
            fields = {
                "app_name": content.get("appName") or content.get("app_name") or "",
                "window_name": content.get("windowName") or content.get("window_name") or "",
                "text": content.get("text"),
            }

        try:
            sample = cls(timestamp=content["timestamp"], **fields)
        except ValidationError:
            logger.warning("Invalid timestamp on activity item: %r", content.get("timestamp"))
            return None
        return sample.model_copy(update={"timestamp": ensure_utc(sample.timestamp)})


class AppSwitchEvent(BaseModel):
    """The foreground app changed to `app_name` at `timestamp`."""
    timestamp: datetime
    app_name: str
    window_name: str = ""

    def to_log_payload(self) -> dict:
        return {
            "timestamp": int(ensure_utc(self.timestamp).timestamp() * 1000),
            "app": self.app_name,
            "windowName": self.window_name or "",
        }


class ActivityLogEntry(BaseModel):
    """App switch log record as posted to /logs"""
    timestamp: int                      # epoch milliseconds
    app: str
    windowName: str | None = ""


class RecentActivityResponse(BaseModel):
    """Raw activity returned by the capture service"""
    success: bool
    data: list[dict] = []
    error: str | None = None
