import logging
from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends
from app.deps import get_controller
from app.errors import TransientFetchError
from app.schemas.activity import RecentActivityResponse
from app.services.session_controller import SessionController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("/recent", response_model=RecentActivityResponse)
async def get_recent_activity(
    content_type: str = "audio",
    minutes: int = 60,
    controller: SessionController = Depends(get_controller),
):
    """
    Query the capture service directly for recent activity.
    Useful to check the service is recording before starting a session.
    """
    now = datetime.now(timezone.utc)
    try:
        data = await controller.source.query(content_type, now - timedelta(minutes=minutes), now)
    except TransientFetchError as e:
        logger.error("Activity query error: %s", e)
        return RecentActivityResponse(success=False, error=str(e))
    if not data:
        return RecentActivityResponse(success=False, error="No data found")
    return RecentActivityResponse(success=True, data=data)

