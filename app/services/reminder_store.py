import json
import logging
from datetime import datetime, timezone
from typing import Optional
from pydantic import TypeAdapter, ValidationError

from app.errors import DuplicateReminderError
from app.schemas.reminder import (
    AppContext,
    ReminderItem,
    ReminderStatus,
    new_reminder_id,
)
from app.services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

TODO_KEY = "smart-reminder-todos"

_items_adapter = TypeAdapter(list[ReminderItem])


class ReminderStore:
    """Reminder to-do list, rewritten to the key-value store after every change."""

    def __init__(self, kv: KeyValueStore, key: str = TODO_KEY):
        self._kv = kv
        self._key = key
        self._items: list[ReminderItem] = self._load()

    def _load(self) -> list[ReminderItem]:
        raw = self._kv.get(self._key)
        if not raw:
            return []
        try:
            return _items_adapter.validate_json(raw)
        except ValidationError:
            logger.error("Stored reminder list is unreadable; starting empty")
            return []

    def _save(self) -> None:
        payload = [item.model_dump(mode="json") for item in self._items]
        self._kv.set(self._key, json.dumps(payload))

    def _index(self, reminder_id: str) -> Optional[int]:
        for i, item in enumerate(self._items):
            if item.id == reminder_id:
                return i
        return None

    def list(self, status: Optional[ReminderStatus] = None) -> list[ReminderItem]:
        if status is None:
            return list(self._items)
        return [item for item in self._items if item.status == status]

    def get(self, reminder_id: str) -> Optional[ReminderItem]:
        i = self._index(reminder_id)
        return self._items[i] if i is not None else None

    def add(self, item: ReminderItem) -> ReminderItem:
        if self._index(item.id) is not None:
            raise DuplicateReminderError(f"Reminder {item.id} already exists")
        self._items.append(item)
        self._save()
        logger.info("Added reminder %s: %s", item.id, item.title)
        return item

    def add_manual(self, title: str, description: str, app_name: Optional[str] = None) -> ReminderItem:
        item = ReminderItem(
            id=new_reminder_id("todo"),
            title=title,
            description=description,
            created_at=datetime.now(timezone.utc),
            app_context=AppContext(app_name=app_name) if app_name else None,
        )
        return self.add(item)

    def _set_status(self, reminder_id: str, status: ReminderStatus) -> Optional[ReminderItem]:
        i = self._index(reminder_id)
        if i is None:
            logger.debug("No reminder %s to mark %s", reminder_id, status.value)
            return None
        self._items[i] = self._items[i].model_copy(update={"status": status})
        self._save()
        return self._items[i]

    def mark_completed(self, reminder_id: str) -> Optional[ReminderItem]:
        return self._set_status(reminder_id, ReminderStatus.COMPLETED)

    def dismiss(self, reminder_id: str) -> Optional[ReminderItem]:
        return self._set_status(reminder_id, ReminderStatus.DISMISSED)

    def delete(self, reminder_id: str) -> bool:
        i = self._index(reminder_id)
        if i is None:
            return False
        del self._items[i]
        self._save()
        logger.info("Deleted reminder %s", reminder_id)
        return True

    def clear(self) -> None:
        self._items = []
        self._save()
        logger.info("Cleared all reminders")
