from fastapi import APIRouter, Depends, HTTPException, Response
from app.deps import get_reminder_store
from app.errors import DuplicateReminderError
from app.schemas.reminder import ReminderCreate, ReminderItem, ReminderListResponse, ReminderStatus
from app.services.reminder_store import ReminderStore

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.get("", response_model=ReminderListResponse)
async def list_reminders(
    status: ReminderStatus | None = None,
    store: ReminderStore = Depends(get_reminder_store),
):
    """Get reminders in creation order, optionally only those with one status."""
    reminders = store.list(status)
    return ReminderListResponse(reminders=reminders, count=len(reminders))


@router.post("", response_model=ReminderItem, status_code=201)
async def add_reminder(
    request: ReminderCreate,
    store: ReminderStore = Depends(get_reminder_store),
):
    """Add a reminder to the to-do list by hand."""
    try:
        return store.add_manual(request.title, request.description, request.app_name)
    except DuplicateReminderError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.patch("/{reminder_id}/complete", response_model=ReminderItem)
async def complete_reminder(
    reminder_id: str,
    store: ReminderStore = Depends(get_reminder_store),
):
    """
    Mark a reminder as completed.
    Unknown ids are ignored and answered with 204.
    """
    item = store.mark_completed(reminder_id)
    if item is None:
        return Response(status_code=204)
    return item


@router.patch("/{reminder_id}/dismiss", response_model=ReminderItem)
async def dismiss_reminder(
    reminder_id: str,
    store: ReminderStore = Depends(get_reminder_store),
):
    """Dismiss a reminder without completing it."""
    item = store.dismiss(reminder_id)
    if item is None:
        return Response(status_code=204)
    return item


@router.delete("/{reminder_id}", status_code=204)
async def delete_reminder(
    reminder_id: str,
    store: ReminderStore = Depends(get_reminder_store),
):
    store.delete(reminder_id)


@router.delete("", status_code=204)
async def clear_reminders(store: ReminderStore = Depends(get_reminder_store)):
    """Clear the whole to-do list."""
    store.clear()
