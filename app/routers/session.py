from fastapi import APIRouter, Depends, HTTPException
from app.deps import get_controller
from app.errors import ConnectivityError
from app.schemas.activity import AppSwitchEvent
from app.schemas.reminder import ReminderItem
from app.services.session_controller import SessionController, SessionStatus

router = APIRouter(prefix="/session", tags=["session"])


@router.post("/start", response_model=SessionStatus)
async def start_tracking(controller: SessionController = Depends(get_controller)):
    """
    Start monitoring app usage.
    Answers 503 when the activity capture service cannot be reached.
    """
    try:
        await controller.start()
    except ConnectivityError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return controller.status()


@router.post("/stop", response_model=SessionStatus)
async def stop_tracking(controller: SessionController = Depends(get_controller)):
    """Stop monitoring. The to-do list is left as it is."""
    controller.stop()
    return controller.status()


@router.post("/poll")
async def poll_now(controller: SessionController = Depends(get_controller)):
    """Manually trigger an activity fetch for testing."""
    if not controller.tracking:
        return {"status": "not_tracking", "fetched": 0}
    samples = await controller.poll()
    return {"status": "fetched", "fetched": len(samples)}


@router.post("/analyze", response_model=list[ReminderItem])
async def analyze_now(controller: SessionController = Depends(get_controller)):
    """Manually run an analysis cycle on the queued activity."""
    return await controller.analyze_cycle()


@router.get("/status", response_model=SessionStatus)
async def get_status(controller: SessionController = Depends(get_controller)):
    return controller.status()


@router.get("/history", response_model=list[AppSwitchEvent])
async def get_app_history(controller: SessionController = Depends(get_controller)):
    """App switches seen in the current tracking session."""
    return controller.app_history
