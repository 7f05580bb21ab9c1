from fastapi import APIRouter, Depends
from app.deps import get_activity_log
from app.schemas.activity import ActivityLogEntry
from app.services.activity_log import InMemoryActivityLog

router = APIRouter(prefix="/logs", tags=["logs"])


@router.post("")
async def save_log(
    entry: ActivityLogEntry,
    activity_log: InMemoryActivityLog = Depends(get_activity_log),
):
    """Save a new app switch log. Only the newest entries are kept in memory."""
    activity_log.append(entry.model_copy(update={"windowName": entry.windowName or ""}))
    return {"message": "Log saved successfully"}


@router.get("")
async def get_logs(
    limit: int | None = None,
    since: int | None = None,
    activity_log: InMemoryActivityLog = Depends(get_activity_log),
):
    """
    Get app switch logs.
    `since` filters by epoch-millis timestamp, `limit` keeps the newest N.
    """
    return {"logs": activity_log.list(limit=limit, since=since)}


@router.delete("")
async def clear_logs(activity_log: InMemoryActivityLog = Depends(get_activity_log)):
    activity_log.clear()
    return {"message": "All logs cleared successfully"}
