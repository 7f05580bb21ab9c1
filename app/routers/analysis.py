import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException
from app.deps import get_controller, get_settings_store
from app.errors import AnalysisProviderError
from app.schemas.activity import ActivitySample
from app.schemas.preferences import UserSettings
from app.schemas.reminder import AnalysisRequest, AnalysisResponse
from app.services.prompt_builder import LARGE_PROMPT_KB, prompt_size_kb
from app.services.session_controller import SessionController
from app.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post("/reminders", response_model=AnalysisResponse)
async def analyze_reminders(
    request: AnalysisRequest,
    controller: SessionController = Depends(get_controller),
    settings_store: SettingsStore = Depends(get_settings_store),
):
    """
    Analyze a posted batch of activity outside a tracking session.
    Nothing is added to the to-do list; suggestions are returned as-is.
    """
    samples = [s for s in (ActivitySample.from_raw(a) for a in request.activities) if s is not None]
    samples.sort(key=lambda s: s.timestamp)
    logger.info("Analyzing %d activities (%d usable)", len(request.activities), len(samples))

    if request.prompt:
        prompt = request.prompt
        size_kb = prompt_size_kb(prompt)
        if size_kb > LARGE_PROMPT_KB:
            logger.warning("Custom prompt size is large (%.2fKB)", size_kb)
    else:
        prompt = controller.builder.build(samples)

    user_settings = settings_store.load()
    if request.settings:
        overrides = request.settings.model_dump(exclude_none=True)
        user_settings = UserSettings(**{**user_settings.model_dump(), **overrides})

    client = controller.client_factory(user_settings)
    try:
        analysis = await client.generate(prompt)
    except AnalysisProviderError as e:
        raise HTTPException(status_code=502, detail=str(e))

    result = controller.parser.parse(analysis)
    return AnalysisResponse(
        analysis=analysis,
        suggestions=result.reminder_suggestions,
        insights=result.general_insights,
        timestamp=datetime.now(timezone.utc),
    )
