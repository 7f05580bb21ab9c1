import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional
from pydantic import BaseModel

from app.errors import AnalysisProviderError, ConnectivityError, TransientFetchError
from app.schemas.activity import ActivitySample, AppSwitchEvent
from app.schemas.preferences import UserSettings
from app.schemas.reminder import ReminderItem
from app.services.activity_log import ActivityLogSink
from app.services.activity_source import ActivitySource
from app.services.ai_service import AnalysisClient
from app.services.prompt_builder import PromptBuilder
from app.services.reminder_store import ReminderStore
from app.services.response_parser import ResponseParser
from app.services.scheduler import PeriodicTimer

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """One tracking run."""
    started_at: datetime
    last_polled_at: Optional[datetime] = None
    queue: list[ActivitySample] = field(default_factory=list)


class SessionStatus(BaseModel):
    tracking: bool
    started_at: datetime | None = None
    last_polled_at: datetime | None = None
    queue_size: int = 0
    current_app: str | None = None
    error_message: str | None = None
    fetch_interval_seconds: float
    analysis_interval_seconds: float
    last_analysis_at: datetime | None = None
    insights: list[str] = []


class SessionController:
    """Polls activity into a session queue and periodically turns it into reminders."""

    def __init__(
        self,
        source: ActivitySource,
        builder: PromptBuilder,
        parser: ResponseParser,
        store: ReminderStore,
        log_sink: ActivityLogSink,
        client_factory: Callable[[UserSettings], AnalysisClient] = AnalysisClient.from_user_settings,
        settings_provider: Callable[[], UserSettings] = UserSettings,
        content_type: str = "audio+ocr",
        query_limit: int = 50,
        fetch_interval: float = 10.0,
        initial_fetch_delay: float = 1.0,
        history_limit: int = 1000,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.source = source
        self.builder = builder
        self.parser = parser
        self.store = store
        self.log_sink = log_sink
        self.client_factory = client_factory
        self.settings_provider = settings_provider
        self.content_type = content_type
        self.query_limit = query_limit
        self.fetch_interval = fetch_interval
        self.initial_fetch_delay = initial_fetch_delay
        self.history_limit = history_limit
        self._clock = clock

        self._tracking = False
        self._session: Optional[Session] = None
        self._fetch_timer: Optional[PeriodicTimer] = None
        self._analysis_timer: Optional[PeriodicTimer] = None
        self._initial_fetch: Optional[asyncio.TimerHandle] = None
        self._generation = 0
        self._background: set[asyncio.Task] = set()
        self._last_seen_app: Optional[str] = None
        self._app_listeners: list[Callable[[str], None]] = []

        self.current_app: Optional[str] = None
        self.app_history: list[AppSwitchEvent] = []
        self.error_message: Optional[str] = None
        self.last_analysis: Optional[str] = None
        self.last_analysis_at: Optional[datetime] = None
        self.insights: list[str] = []

    @property
    def tracking(self) -> bool:
        return self._tracking

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def timers(self) -> list[PeriodicTimer]:
        return [t for t in (self._fetch_timer, self._analysis_timer) if t is not None and t.active]

    def on_current_app_change(self, callback: Callable[[str], None]) -> None:
        self._app_listeners.append(callback)

    def _analysis_interval(self) -> float:
        minutes = self.settings_provider().analysis_frequency_minutes
        return max(1, min(10, minutes)) * 60.0

    async def start(self) -> None:
        """Begin tracking. Raises ConnectivityError when the activity source is unreachable."""
        if self._tracking:
            logger.info("Already tracking, ignoring start request")
            return
        self._tracking = True
        self._generation += 1
        generation = self._generation

        try:
            await self.source.probe()
        except ConnectivityError as e:
            if generation == self._generation:
                self._tracking = False
                self.error_message = str(e)
            raise
        if generation != self._generation:
            logger.info("Tracking was stopped or restarted while checking the activity source")
            return
        self._cancel_timers()

        now = self._clock()
        self._session = Session(started_at=now)
        self.app_history = []
        self.current_app = None
        self._last_seen_app = None
        self.error_message = None

        loop = asyncio.get_running_loop()
        self._fetch_timer = PeriodicTimer("fetch", self.fetch_interval, self.poll)
        self._analysis_timer = PeriodicTimer("analysis", self._analysis_interval(), self.analyze_cycle)
        self._fetch_timer.start()
        self._analysis_timer.start()
        self._initial_fetch = loop.call_later(self.initial_fetch_delay, self._fetch_timer.fire)
        logger.info(
            "Tracking started at %s (fetch every %ss, analysis every %ss)",
            now.isoformat(), self.fetch_interval, self._analysis_timer.interval,
        )

    def stop(self) -> None:
        if not self._tracking:
            return
        self._tracking = False
        self._generation += 1
        self._session = None
        self._cancel_timers()
        logger.info("Tracking stopped; %d reminders kept", len(self.store.list()))

    def _cancel_timers(self) -> None:
        for timer in (self._fetch_timer, self._analysis_timer):
            if timer is not None:
                timer.cancel()
        self._fetch_timer = None
        self._analysis_timer = None
        if self._initial_fetch is not None:
            self._initial_fetch.cancel()
            self._initial_fetch = None

    async def poll(self) -> list[ActivitySample]:
        """Fetch activity since the last poll into the current session queue."""
        session = self._session
        if not self._tracking or session is None:
            logger.debug("Skipping fetch as tracking is not active")
            return []

        window_start = session.last_polled_at or session.started_at
        now = max(self._clock(), window_start)
        logger.debug("Fetching activity from %s to %s", window_start.isoformat(), now.isoformat())

        try:
            raw_items = await self.source.query(self.content_type, window_start, now, self.query_limit)
        except TransientFetchError as e:
            logger.warning("Activity fetch failed: %s", e)
            raw_items = []
            if self._session is session:
                self.error_message = "Failed to fetch activity. Is the capture service running?"

        if self._session is not session:
            logger.debug("Discarding fetch result from a finished session")
            return []
        session.last_polled_at = now

        samples = []
        for item in raw_items:
            sample = ActivitySample.from_raw(item)
            if sample is not None and window_start < sample.timestamp <= now:
                samples.append(sample)
        if not samples:
            logger.debug("No new activity found")
            return []

        samples.sort(key=lambda s: s.timestamp)
        session.queue.extend(samples)
        logger.info("Queued %d new samples (%d pending)", len(samples), len(session.queue))

        for event in self._app_switches(samples):
            self._record_switch(event)
        self._set_current_app(samples[-1].app_name)
        return samples

    def _app_switches(self, samples: list[ActivitySample]) -> list[AppSwitchEvent]:
        events = []
        for sample in samples:
            if not sample.app_name or sample.app_name == self._last_seen_app:
                continue
            self._last_seen_app = sample.app_name
            events.append(AppSwitchEvent(
                timestamp=sample.timestamp,
                app_name=sample.app_name,
                window_name=sample.window_name,
            ))
        return events

    def _record_switch(self, event: AppSwitchEvent) -> None:
        self.app_history.append(event)
        if len(self.app_history) > self.history_limit:
            self.app_history = self.app_history[-self.history_limit:]
        task = asyncio.get_running_loop().create_task(self._send_to_log(event))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _send_to_log(self, event: AppSwitchEvent) -> None:
        try:
            await self.log_sink.record(event)
        except Exception:
            logger.warning("Failed to log app switch to %s", event.app_name, exc_info=True)

    def _set_current_app(self, app_name: str) -> None:
        if not app_name or app_name == self.current_app:
            return
        logger.info("Current app changed to %s", app_name)
        self.current_app = app_name
        for callback in self._app_listeners:
            try:
                callback(app_name)
            except Exception:
                logger.exception("Current app listener failed")

    async def analyze_cycle(self) -> list[ReminderItem]:
        """Hand the queued batch to the model and store accepted reminders."""
        session = self._session
        if not self._tracking or session is None or not session.queue:
            logger.debug("No new activities to analyze")
            return []

        batch = session.queue
        session.queue = []
        logger.info("Running AI analysis on %d activities", len(batch))

        try:
            prompt = self.builder.build(batch)
            client = self.client_factory(self.settings_provider())
            raw_text = await client.generate(prompt)
        except AnalysisProviderError as e:
            logger.warning("AI analysis failed, dropping %d samples: %s", len(batch), e)
            self._analysis_failed(session)
            return []
        except Exception:
            logger.exception("Could not run AI analysis, dropping %d samples", len(batch))
            self._analysis_failed(session)
            return []

        if self._session is not session:
            logger.debug("Discarding analysis result from a finished session")
            return []

        result = self.parser.parse(raw_text)
        self.last_analysis = raw_text
        self.last_analysis_at = self._clock()
        self.insights = result.general_insights

        created = []
        for suggestion in result.reminder_suggestions:
            if not suggestion.should_remind:
                continue
            created.append(self.store.add(ReminderItem.from_suggestion(suggestion, now=self.last_analysis_at)))
        logger.info("Analysis produced %d reminders", len(created))
        return created

    def _analysis_failed(self, session: Session) -> None:
        if self._session is session:
            self.error_message = "Failed to analyze app usage patterns"

    def status(self) -> SessionStatus:
        session = self._session
        return SessionStatus(
            tracking=self._tracking,
            started_at=session.started_at if session else None,
            last_polled_at=session.last_polled_at if session else None,
            queue_size=len(session.queue) if session else 0,
            current_app=self.current_app,
            error_message=self.error_message,
            fetch_interval_seconds=self.fetch_interval,
            analysis_interval_seconds=self._analysis_timer.interval if self._analysis_timer else self._analysis_interval(),
            last_analysis_at=self.last_analysis_at,
            insights=self.insights,
        )
