import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from app.config import Settings, settings
from app.db import SessionLocal, init_db
from app.errors import ConnectivityError
from app.routers import activity, analysis, logs, preferences, reminders, session
from app.services.activity_log import HttpActivityLogSink, InMemoryActivityLog
from app.services.activity_source import ActivitySource
from app.services.kv_store import KeyValueStore
from app.services.prompt_builder import PromptBuilder
from app.services.reminder_store import ReminderStore
from app.services.response_parser import ParserSettings, ResponseParser
from app.services.session_controller import SessionController
from app.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    source: Optional[ActivitySource] = None,
) -> FastAPI:
    """Wire stores, the session controller and routers into a FastAPI app."""
    app_settings = app_settings or settings
    session_factory = session_factory or SessionLocal
    init_db(session_factory.kw["bind"])

    kv = KeyValueStore(session_factory)
    settings_store = SettingsStore(kv, app_settings)
    reminder_store = ReminderStore(kv)
    activity_log = InMemoryActivityLog(max_entries=app_settings.app_history_limit)
    log_sink = HttpActivityLogSink(app_settings.activity_log_url) if app_settings.activity_log_url else activity_log

    controller = SessionController(
        source=source or ActivitySource(app_settings.activity_source_url, timeout=app_settings.activity_timeout_seconds),
        builder=PromptBuilder(
            output_format=app_settings.prompt_format,
            max_samples=app_settings.prompt_max_samples,
            text_prefix=app_settings.prompt_text_prefix,
            aggregate=app_settings.prompt_aggregate,
            brief_threshold_seconds=app_settings.brief_interaction_seconds,
        ),
        parser=ResponseParser(ParserSettings(
            min_description_length=app_settings.min_description_length,
            min_confidence=app_settings.min_confidence,
            default_should_remind=app_settings.default_should_remind,
        )),
        store=reminder_store,
        log_sink=log_sink,
        settings_provider=settings_store.load,
        content_type=app_settings.activity_content_type,
        query_limit=app_settings.activity_query_limit,
        fetch_interval=app_settings.fetch_interval_seconds,
        initial_fetch_delay=app_settings.initial_fetch_delay_seconds,
        history_limit=app_settings.app_history_limit,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await settings_store.load_remote()
        logger.info("Smart Reminder API ready; activity source %s", app_settings.activity_source_url)
        yield
        controller.stop()

    app = FastAPI(title="Smart Reminder API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.controller = controller
    app.state.reminder_store = reminder_store
    app.state.settings_store = settings_store
    app.state.activity_log = activity_log

    for module in (session, reminders, preferences, logs, analysis, activity):
        app.include_router(module.router)

    @app.get("/health")
    async def health():
        source_ok = True
        try:
            await controller.source.probe()
        except ConnectivityError:
            source_ok = False
        client = controller.client_factory(settings_store.load())
        return {
            "status": "ok" if source_ok else "degraded",
            "activity_source": source_ok,
            "ai_provider": await client.check_available(),
            "tracking": controller.tracking,
        }

    return app


logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
