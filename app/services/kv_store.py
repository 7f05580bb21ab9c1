from typing import Optional
from sqlalchemy.orm import Session, sessionmaker

from app.models.kv import KeyValueEntry


class KeyValueStore:
    """String values keyed by name, one row per key."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        db: Session = self._session_factory()
        try:
            entry = db.query(KeyValueEntry).filter(KeyValueEntry.key == key).first()
            return entry.value if entry else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db: Session = self._session_factory()
        try:
            entry = db.query(KeyValueEntry).filter(KeyValueEntry.key == key).first()
            if entry:
                entry.value = value
            else:
                db.add(KeyValueEntry(key=key, value=value))
            db.commit()
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db: Session = self._session_factory()
        try:
            db.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete()
            db.commit()
        finally:
            db.close()
