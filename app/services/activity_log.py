import logging
from typing import Optional, Protocol
import httpx

from app.schemas.activity import ActivityLogEntry, AppSwitchEvent

logger = logging.getLogger(__name__)

MAX_LOG_ENTRIES = 1000


class ActivityLogSink(Protocol):
    async def record(self, event: AppSwitchEvent) -> None:
        ...


def _is_loggable(event: AppSwitchEvent) -> bool:
    if not event.app_name or not event.timestamp:
        logger.error("Invalid app switch event for logging: %r", event)
        return False
    return True


class InMemoryActivityLog:
    """In-process app switch log, newest MAX_LOG_ENTRIES kept."""

    def __init__(self, max_entries: int = MAX_LOG_ENTRIES):
        self.max_entries = max_entries
        self._entries: list[ActivityLogEntry] = []

    def append(self, entry: ActivityLogEntry) -> None:
        self._entries.append(entry)
        if len(self._entries) > self.max_entries:
            self._entries = self._entries[-self.max_entries:]

    async def record(self, event: AppSwitchEvent) -> None:
        if _is_loggable(event):
            self.append(ActivityLogEntry(**event.to_log_payload()))

    def list(self, limit: Optional[int] = None, since: Optional[int] = None) -> list[ActivityLogEntry]:
        entries = list(self._entries)
        if since:
            entries = [e for e in entries if e.timestamp >= since]
        if limit and limit > 0:
            entries = entries[-limit:]
        return entries

    def clear(self) -> None:
        self._entries = []


class HttpActivityLogSink:
    """Posts app switches to a remote log endpoint. Failures are logged, never retried."""

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    async def record(self, event: AppSwitchEvent) -> None:
        if not _is_loggable(event):
            return
        payload = event.to_log_payload()
        logger.debug("Logging app switch: %s", payload)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Error logging app switch to %s: %s", self.url, e)
            return
        if response.is_error:
            logger.warning("Failed to log app switch: %s %s", response.status_code, response.text)
