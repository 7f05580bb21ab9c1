from fastapi import APIRouter, Depends
from app.deps import get_settings_store
from app.schemas.preferences import UserSettingsUpdate, UserSettingsResponse
from app.services.settings_store import SettingsStore

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=UserSettingsResponse)
async def get_settings(store: SettingsStore = Depends(get_settings_store)):
    """
    Get the current provider and cadence settings.
    Falls back to the remote settings endpoint, then defaults, when nothing is stored.
    """
    return store.public_view(store.load())


@router.put("", response_model=UserSettingsResponse)
async def update_settings(
    updates: UserSettingsUpdate,
    store: SettingsStore = Depends(get_settings_store),
):
    """
    Update settings. Only updates fields that are provided in the request.
    A new analysis frequency applies from the next tracking session.
    """
    return store.public_view(store.update(updates))


@router.delete("", response_model=UserSettingsResponse)
async def reset_settings(store: SettingsStore = Depends(get_settings_store)):
    """Forget stored settings and return whatever applies now."""
    return store.public_view(store.reset())
