import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, NamedTuple, Optional

from app.schemas.reminder import AnalysisResult, ReminderPriority, ReminderSuggestion
from app.services.prompt_builder import SCHEMA_VERSIONS, PromptFormat

logger = logging.getLogger(__name__)

FREE_TEXT_SCHEMA = "free-text"
CONTEXT_CHARS = 300


@dataclass(frozen=True)
class ParserSettings:
    min_description_length: int = 20
    min_confidence: float = 0.7
    default_should_remind: bool = True


class ParseStrategy(NamedTuple):
    name: str
    schema: str
    extract: Callable[[str, ParserSettings, datetime], Optional[AnalysisResult]]


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().strip("*").strip().strip("[]\"'`").strip()


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return default


def _as_confidence(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_priority(value: Any) -> ReminderPriority:
    try:
        return ReminderPriority(str(value).strip().lower())
    except ValueError:
        return ReminderPriority.MEDIUM


def _first_present(data: dict, *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


# --- 1. Embedded JSON ------------------------------------------------------

_FENCED_BLOCK = re.compile(r"^[ \t]*```[ \t]*(?:json)?[ \t]*\n(.*?)\n[ \t]*```", re.IGNORECASE | re.DOTALL | re.MULTILINE)


def _suggestion_from_json(obj: Any, options: ParserSettings, now: datetime) -> Optional[ReminderSuggestion]:
    if not isinstance(obj, dict):
        return None
    title = _clean(obj.get("title"))
    description = _clean(_first_present(obj, "description", "message"))
    if not title or not description:
        return None
    return ReminderSuggestion(
        title=title,
        description=description,
        app_name=_clean(_first_present(obj, "appName", "app_name", "app")),
        window_name=_clean(_first_present(obj, "windowName", "window_name")) or None,
        should_remind=_as_bool(_first_present(obj, "shouldRemind", "should_remind"), options.default_should_remind),
        confidence=_as_confidence(obj.get("confidence")),
        priority=_as_priority(obj.get("priority")),
        extracted_at=now,
    )


def extract_embedded_json(text: str, options: ParserSettings, now: datetime) -> Optional[AnalysisResult]:
    """Greedy first-`{` to last-`}` span, inside the first fenced block when there is one."""
    fenced = _FENCED_BLOCK.search(text)
    cleaned = fenced.group(1) if fenced and "{" in fenced.group(1) else text
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        data = json.loads(cleaned[start:end + 1])
    except ValueError:
        logger.debug("Embedded JSON did not deserialize")
        return None
    if not isinstance(data, dict):
        return None

    raw_reminders = _first_present(data, "reminders", "reminderSuggestions", "reminder_suggestions")
    raw_insights = _first_present(data, "insights", "generalInsights", "general_insights")
    if raw_reminders is None and raw_insights is None:
        return None

    suggestions = []
    if isinstance(raw_reminders, list):
        for obj in raw_reminders:
            suggestion = _suggestion_from_json(obj, options, now)
            if suggestion:
                suggestions.append(suggestion)

    insights = []
    if isinstance(raw_insights, list):
        insights = [_clean(i) for i in raw_insights if _clean(i)]
    elif isinstance(raw_insights, str) and raw_insights.strip():
        insights = [raw_insights.strip()]

    return AnalysisResult(reminder_suggestions=suggestions, general_insights=insights)


# --- 2. Labeled sections ---------------------------------------------------

_REMINDER_SECTION = re.compile(r"reminder suggestions\**:?(.*?)(?=general insights|\Z)", re.IGNORECASE | re.DOTALL)
_INSIGHTS_SECTION = re.compile(r"general insights\**:?\**(.*)\Z", re.IGNORECASE | re.DOTALL)


def _label(name: str, value: str = r"([^\n]*)") -> re.Pattern:
    return re.compile(rf"{name}\**[ \t]*:\**[ \t]*{value}", re.IGNORECASE)


_FIELDS = {
    "title": _label("title"),
    "description": _label("description"),
    "app_name": _label("app name"),
    "window_name": _label("window name"),
    "should_remind": _label("should remind", r"(true|false|yes|no)"),
}

_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def _entry_starts(section: str) -> list[int]:
    """Offsets where entries begin, keyed on whichever label appears first."""
    first = None
    for pattern in _FIELDS.values():
        match = pattern.search(section)
        if match and (first is None or match.start() < first[0]):
            first = (match.start(), pattern)
    if first is None:
        return []
    return [m.start() for m in first[1].finditer(section)]


def _general_insights(text: str) -> list[str]:
    match = _INSIGHTS_SECTION.search(text)
    if not match:
        return []
    insights = []
    for line in match.group(1).splitlines():
        line = _clean(_BULLET.sub("", line))
        if line and not line.startswith("#"):
            insights.append(line)
    return insights


def extract_labeled_sections(text: str, options: ParserSettings, now: datetime) -> Optional[AnalysisResult]:
    """`App Name:` anchored fields inside a "Reminder Suggestions" section."""
    section_match = _REMINDER_SECTION.search(text)
    if not section_match:
        return None
    section = section_match.group(1)
    starts = _entry_starts(section)

    suggestions = []
    for app_match in _FIELDS["app_name"].finditer(section):
        app_name = _clean(app_match.group(1))
        if not app_name:
            continue
        pos = app_match.start()
        block_start = max((s for s in starts if s <= pos), default=0)
        block_end = min((s for s in starts if s > pos), default=len(section))
        lo = max(block_start, pos - CONTEXT_CHARS)
        hi = min(block_end, pos + CONTEXT_CHARS)

        found = {name: _FIELDS[name].search(section, lo, hi) for name in ("title", "description", "window_name", "should_remind")}
        title = _clean(found["title"].group(1)) if found["title"] else ""
        description = _clean(found["description"].group(1)) if found["description"] else ""
        if not title or not description:
            continue
        window_name = _clean(found["window_name"].group(1)) if found["window_name"] else ""
        should_remind = (
            _as_bool(found["should_remind"].group(1), options.default_should_remind)
            if found["should_remind"] else options.default_should_remind
        )
        suggestions.append(ReminderSuggestion(
            title=title,
            description=description,
            app_name=app_name,
            window_name=window_name or None,
            should_remind=should_remind,
            extracted_at=now,
        ))

    if not suggestions:
        return None
    return AnalysisResult(reminder_suggestions=suggestions, general_insights=_general_insights(text))


# --- 3. Brief-usage heuristic ----------------------------------------------

_APP_WORD = r"(?!(?:and|then|but|or|so|with|in|on|at|to|for|of|from|again|before|after|while|without|briefly|quickly)\b)\w[\w+&-]*(?:\.\w+)*"

_BRIEF_USAGE = re.compile(
    r"\b(?P<action>briefly|quickly)\s+(?P<verb>used|opened|checked|visited)\s+(?:the\s+)?"
    rf"(?P<app>{_APP_WORD}(?:[ \t]+{_APP_WORD}){{0,3}})"
    r"(?:\s+(?:with|in|on)\s+(?:the\s+)?(?:(?:window|tab)\s*)?['\":]?\s*(?P<window>[^'\".,\n]+))?",
    re.IGNORECASE,
)


def extract_brief_usage(text: str, options: ParserSettings, now: datetime) -> Optional[AnalysisResult]:
    """Templated suggestions for "briefly opened <App>" style phrases."""
    suggestions = []
    seen = set()
    for match in _BRIEF_USAGE.finditer(text):
        action = match.group("action").lower()
        verb = match.group("verb").lower()
        app_name = match.group("app").strip().rstrip(".")
        window_name = (match.group("window") or "").strip()
        if (app_name, window_name) in seen:
            continue
        seen.add((app_name, window_name))

        if window_name:
            description = f'You {action} {verb} {app_name} with window "{window_name}". Need to return to it later?'
        else:
            description = f"You {action} {verb} {app_name}. Need to return to it later?"
        suggestions.append(ReminderSuggestion(
            title=f"Quick {app_name} check detected",
            description=description,
            app_name=app_name,
            window_name=window_name or None,
            should_remind=True,
            extracted_at=now,
        ))

    if not suggestions:
        return None
    return AnalysisResult(reminder_suggestions=suggestions)


DEFAULT_STRATEGIES = (
    ParseStrategy("embedded_json", SCHEMA_VERSIONS[PromptFormat.JSON], extract_embedded_json),
    ParseStrategy("labeled_sections", SCHEMA_VERSIONS[PromptFormat.SECTIONS], extract_labeled_sections),
    ParseStrategy("brief_usage_heuristic", FREE_TEXT_SCHEMA, extract_brief_usage),
)


class ResponseParser:
    """Recovers reminder suggestions from model text, trying each strategy in order."""

    def __init__(
        self,
        options: Optional[ParserSettings] = None,
        strategies: tuple[ParseStrategy, ...] = DEFAULT_STRATEGIES,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.options = options or ParserSettings()
        self.strategies = tuple(strategies)
        self._clock = clock

    def strategy_for(self, schema: str) -> ParseStrategy:
        matches = [s for s in self.strategies if s.schema == schema]
        if len(matches) != 1:
            raise LookupError(f"Expected one strategy for schema {schema!r}, found {len(matches)}")
        return matches[0]

    def accepts(self, suggestion: ReminderSuggestion) -> bool:
        description = suggestion.description.strip()
        if len(description) <= self.options.min_description_length:
            return False
        if description.lower() == suggestion.title.strip().lower():
            return False
        if suggestion.app_name and description.lower() == suggestion.app_name.strip().lower():
            return False
        if "undefined" in description:
            return False
        if suggestion.confidence is not None and suggestion.confidence < self.options.min_confidence:
            return False
        return True

    def parse(self, raw_text: Optional[str]) -> AnalysisResult:
        if not raw_text or not raw_text.strip():
            return AnalysisResult()

        now = self._clock()
        for strategy in self.strategies:
            try:
                result = strategy.extract(raw_text, self.options, now)
            except Exception:
                logger.exception("Parse strategy %s failed", strategy.name)
                continue
            if result is None:
                continue

            accepted = [s for s in result.reminder_suggestions if self.accepts(s)]
            rejected = len(result.reminder_suggestions) - len(accepted)
            logger.info(
                "Parsed %d suggestions with %s (%d rejected by quality filter)",
                len(accepted), strategy.name, rejected,
            )
            return AnalysisResult(reminder_suggestions=accepted, general_insights=result.general_insights)

        logger.info("No reminder structure found in model response")
        return AnalysisResult()
