"""Turns a batch of activity samples into a provider-agnostic prompt.

The prompt asks for one of two declared response layouts. Each layout carries
a schema version string matched by exactly one response parser strategy.
"""
import enum
import json
import logging
from dataclasses import dataclass
from datetime import datetime

from app.schemas.activity import ActivitySample

logger = logging.getLogger(__name__)

LARGE_PROMPT_KB = 30


class PromptFormat(str, enum.Enum):
    JSON = "json"
    SECTIONS = "sections"

    @property
    def schema(self) -> str:
        return SCHEMA_VERSIONS[self]


SCHEMA_VERSIONS = {
    PromptFormat.JSON: "reminders-json/2",
    PromptFormat.SECTIONS: "reminders-sections/1",
}


@dataclass
class InteractionSummary:
    """Time spent on one (app, window) pair within a batch."""
    app_name: str
    window_name: str
    first_seen: datetime
    last_seen: datetime
    visit_count: int = 1
    sample_count: int = 1

    @property
    def duration_seconds(self) -> float:
        return (self.last_seen - self.first_seen).total_seconds()

    def is_brief(self, threshold_seconds: float) -> bool:
        return self.duration_seconds < threshold_seconds


def aggregate_interactions(samples: list[ActivitySample]) -> list[InteractionSummary]:
    """Group samples by (app, window), counting separate visits.

    A visit is a run of consecutive samples on the same key, so samples are
    expected in chronological order.
    """
    summaries: dict[tuple[str, str], InteractionSummary] = {}
    previous_key = None
    for sample in samples:
        key = (sample.app_name or "Unknown", sample.window_name or "")
        summary = summaries.get(key)
        if summary is None:
            summaries[key] = InteractionSummary(
                app_name=key[0],
                window_name=key[1],
                first_seen=sample.timestamp,
                last_seen=sample.timestamp,
            )
        else:
            summary.first_seen = min(summary.first_seen, sample.timestamp)
            summary.last_seen = max(summary.last_seen, sample.timestamp)
            summary.sample_count += 1
            if key != previous_key:
                summary.visit_count += 1
        previous_key = key
    return list(summaries.values())


_ANALYSIS_TASK = """## Analysis Task
Please analyze the user's app usage patterns to identify potential reminders they might need.
Focus on the following patterns:

1. Brief app interactions (less than {threshold} seconds in an app) that might indicate unfinished tasks
2. Quick switches between apps that suggest the user might have been interrupted
3. Opening apps that are typically used for specific tasks (banking, calendar, email, etc.) but only briefly

## Special Instructions for Window Names
- If the window name is specific and meaningful (like "Project Proposal" or "Invoice #1234"), use BOTH the app name AND window name in your analysis
- If the window name is generic or random text (like "New Tab" or random characters), focus primarily on the app name
- Always prioritize specific window names that suggest tasks or content"""

_SECTIONS_FORMAT = """## Response Format
Please provide your analysis in the following structure:

### Reminder Suggestions
For each potential reminder, provide:
- Title: [Brief title for the reminder]
- Description: [Detailed description]
- App Name: [Associated application]
- Window Name: [Associated window, if meaningful]
- Should Remind: true/false (whether this should trigger a notification)

### General Insights
[Any broader patterns or insights about the user's app usage]"""

_JSON_EXAMPLE = {
    "reminders": [
        {
            "title": "Finish invoice",
            "description": "You opened Invoice #1234 in your banking app for a few seconds and left before paying it.",
            "appName": "Banking",
            "windowName": "Invoice #1234",
            "shouldRemind": True,
            "confidence": 0.8,
            "priority": "medium",
        }
    ],
    "insights": ["Most switches happened between email and the calendar."],
}

_JSON_FORMAT = """## Response Format
RESPOND WITH JSON ONLY. NO OTHER TEXT.
Return one object with a "reminders" list and an "insights" list of strings.
Each reminder has: title (short), description (one helpful sentence asking if they need to return to the task),
appName, windowName (only if meaningful), shouldRemind (true/false), confidence (0 to 1), priority (low, medium or high).
Only include reminders for truly incomplete tasks. Use an empty list when there are none.

Example:
{example}"""


class PromptBuilder:
    def __init__(
        self,
        output_format: PromptFormat = PromptFormat.JSON,
        max_samples: int = 20,
        text_prefix: int = 30,
        aggregate: bool = True,
        brief_threshold_seconds: float = 20.0,
    ):
        self.output_format = PromptFormat(output_format)
        self.max_samples = max_samples
        self.text_prefix = text_prefix
        self.aggregate = aggregate
        self.brief_threshold_seconds = brief_threshold_seconds

    @property
    def schema(self) -> str:
        return self.output_format.schema

    def build(self, samples: list[ActivitySample]) -> str:
        recent = samples[-self.max_samples:] if self.max_samples > 0 else list(samples)
        if len(recent) < len(samples):
            logger.debug("Limited prompt to %d most recent of %d samples", len(recent), len(samples))

        parts = ["# Smart Reminder Analysis", "## Activity Log", self._activity_log(recent)]
        if self.aggregate and recent:
            parts += ["## Interaction Summary", self._interaction_table(recent)]
        parts.append(_ANALYSIS_TASK.format(threshold=int(self.brief_threshold_seconds)))
        if self.output_format == PromptFormat.JSON:
            parts.append(_JSON_FORMAT.format(example=json.dumps(_JSON_EXAMPLE, indent=2)))
        else:
            parts.append(_SECTIONS_FORMAT)
        prompt = "\n\n".join(parts)

        size_kb = prompt_size_kb(prompt)
        if size_kb > LARGE_PROMPT_KB:
            logger.warning("Prompt size is large (%.2fKB), may cause issues with some models", size_kb)
        return prompt

    def _activity_log(self, samples: list[ActivitySample]) -> str:
        if not samples:
            return "- (no activity recorded)"
        lines = []
        for s in samples:
            text = s.text[:self.text_prefix] if s.text else "N/A"
            lines.append(
                f"- Time: {s.timestamp.strftime('%H:%M:%S')} | App: {s.app_name or 'Unknown'}"
                f" | Window: {s.window_name or 'N/A'} | Text: {text}"
            )
        return "\n".join(lines)

    def _interaction_table(self, samples: list[ActivitySample]) -> str:
        lines = []
        for summary in aggregate_interactions(samples):
            flag = " | BRIEF INTERACTION" if summary.is_brief(self.brief_threshold_seconds) else ""
            lines.append(
                f"- App: {summary.app_name} | Window: {summary.window_name or 'N/A'}"
                f" | Duration: {summary.duration_seconds:.0f}s | Visits: {summary.visit_count}{flag}"
            )
        return "\n".join(lines)


def prompt_size_kb(prompt: str) -> float:
    return len(prompt.encode("utf-8")) / 1024

