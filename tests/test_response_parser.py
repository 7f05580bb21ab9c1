import json

import pytest

from app.schemas.reminder import ReminderPriority, ReminderSuggestion
from app.services.prompt_builder import PromptFormat
from app.services.response_parser import (
    DEFAULT_STRATEGIES,
    ParserSettings,
    ParseStrategy,
    ResponseParser,
    extract_brief_usage,
    extract_embedded_json,
    extract_labeled_sections,
)
from tests.fakes import T0

FINISH_PR = (
    '{"reminders":[{"title":"Finish PR","description":"You opened the pull request for 5 seconds '
    'and left without commenting.","appName":"GitHub","shouldRemind":true,"confidence":0.9}],"insights":[]}'
)

SECTIONS_REPLY = """Here is what I found.

### Reminder Suggestions
- **Title:** Pay electricity bill
- **Description:** You opened the billing page in your banking app for a few seconds and left.
- **App Name:** Banking
- **Window Name:** Invoice #1234
- **Should Remind:** true

- **Title:** Reply to Sam
- **Description:** You glanced at an unread thread from Sam in Slack and switched away.
- **App Name:** Slack
- **Window Name:** 3f2a9c1e-77aa-4bd1
- **Should Remind:** false

### General Insights
- You switch between email and calendar often.
- Mornings are your busiest period.
"""


@pytest.fixture
def parser():
    return ResponseParser(clock=lambda: T0)


def test_json_scenario_yields_one_suggestion(parser):
    result = parser.parse(FINISH_PR)

    assert len(result.reminder_suggestions) == 1
    suggestion = result.reminder_suggestions[0]
    assert suggestion.title == "Finish PR"
    assert suggestion.app_name == "GitHub"
    assert suggestion.should_remind is True
    assert suggestion.confidence == 0.9
    assert suggestion.priority == ReminderPriority.MEDIUM
    assert suggestion.extracted_at == T0
    assert result.general_insights == []


def test_code_fenced_json_parses_like_unfenced(parser):
    fenced = f"Sure! Here you go:\n```json\n{FINISH_PR}\n```\nLet me know if you need more."

    assert parser.parse(fenced) == parser.parse(FINISH_PR)


def test_backticks_inside_json_strings_are_kept(parser):
    description = "You left a half-written ```python code``` snippet in the review thread."
    raw = json.dumps({"reminders": [{
        "title": "Finish the snippet",
        "description": description,
        "appName": "GitHub",
        "shouldRemind": True,
    }]})

    for text in (raw, f"```json\n{raw}\n```"):
        suggestions = parser.parse(text).reminder_suggestions
        assert [s.description for s in suggestions] == [description]


def test_json_round_trip_keeps_only_valid_subset(parser):
    reminders = [
        {"title": "Send invoice", "description": "You drafted the invoice email but never pressed send.",
         "appName": "Mail", "shouldRemind": True, "confidence": 0.95, "priority": "high"},
        {"title": "Short", "description": "Too short.", "appName": "Mail", "shouldRemind": True},
        {"title": "Same", "description": "Same", "appName": "Notes", "shouldRemind": True},
        {"title": "Calendar", "description": "Google Calendar", "appName": "Google Calendar", "shouldRemind": True},
        {"title": "Broken", "description": "You left undefined work in the editor window.", "appName": "Code"},
        {"title": "Unsure", "description": "Maybe you wanted to book the dentist appointment.",
         "appName": "Safari", "confidence": 0.4},
        {"title": "Book flight", "description": "You compared flight prices and closed the tab before booking.",
         "appName": "Safari", "windowName": "Flights", "shouldRemind": False, "priority": "urgent"},
    ]
    raw = json.dumps({"reminders": reminders, "insights": ["Lots of email today."]})

    result = parser.parse(raw)

    assert [s.title for s in result.reminder_suggestions] == ["Send invoice", "Book flight"]
    assert result.reminder_suggestions[0].priority == ReminderPriority.HIGH
    assert result.reminder_suggestions[1].priority == ReminderPriority.MEDIUM
    assert result.reminder_suggestions[1].should_remind is False
    assert result.reminder_suggestions[1].window_name == "Flights"
    assert result.general_insights == ["Lots of email today."]


def test_json_accepts_older_key_names(parser):
    raw = json.dumps({
        "reminderSuggestions": [{
            "title": "Check deploy",
            "description": "You opened the deployment dashboard briefly during a release.",
            "app_name": "Grafana",
            "should_remind": "true",
        }],
        "generalInsights": ["Release day."],
    })

    result = parser.parse(raw)

    assert result.reminder_suggestions[0].app_name == "Grafana"
    assert result.general_insights == ["Release day."]


def test_invalid_json_falls_back_to_next_strategy(parser):
    raw = "{not json at all} but you briefly opened Figma on tab 'Homepage mockup'."

    result = parser.parse(raw)

    assert len(result.reminder_suggestions) == 1
    assert result.reminder_suggestions[0].app_name == "Figma"
    assert result.reminder_suggestions[0].window_name == "Homepage mockup"


def test_json_without_reminders_is_a_valid_empty_outcome(parser):
    result = parser.parse('{"reminders": [], "insights": ["Nothing unfinished."]}')

    assert result.reminder_suggestions == []
    assert result.general_insights == ["Nothing unfinished."]


def test_labeled_sections(parser):
    result = parser.parse(SECTIONS_REPLY)

    titles = [s.title for s in result.reminder_suggestions]
    assert titles == ["Pay electricity bill", "Reply to Sam"]
    bill, reply = result.reminder_suggestions
    assert bill.app_name == "Banking"
    assert bill.window_name == "Invoice #1234"
    assert bill.should_remind is True
    assert reply.app_name == "Slack"
    assert reply.should_remind is False
    assert result.general_insights == [
        "You switch between email and calendar often.",
        "Mornings are your busiest period.",
    ]


def test_labeled_sections_app_name_first_layout():
    text = """Reminder Suggestions:
App Name: Notion
Title: Finish meeting notes
Description: The meeting notes page was opened for ten seconds and left half written.

App Name: Figma
Title: Review mockups
Description: You opened the new mockups file but closed it before leaving comments.
"""
    result = extract_labeled_sections(text, ParserSettings(), T0)

    assert [(s.app_name, s.title) for s in result.reminder_suggestions] == [
        ("Notion", "Finish meeting notes"),
        ("Figma", "Review mockups"),
    ]
    assert all(s.should_remind for s in result.reminder_suggestions)


def test_labeled_sections_need_title_and_description():
    text = "Reminder Suggestions\nApp Name: Slack\nTitle: Reply\n\nGeneral Insights\nNothing."

    assert extract_labeled_sections(text, ParserSettings(), T0) is None


def test_should_remind_default_is_configurable():
    text = (
        "Reminder Suggestions\nTitle: Renew passport\n"
        "Description: You opened the passport renewal form and abandoned it halfway.\nApp Name: Safari\n"
    )
    result = extract_labeled_sections(text, ParserSettings(default_should_remind=False), T0)

    assert result.reminder_suggestions[0].should_remind is False


def test_brief_usage_heuristic():
    text = (
        "The user briefly opened Slack and then quickly checked Google Chrome on tab 'Invoice 1234'. "
        "They also briefly opened Slack again."
    )
    result = extract_brief_usage(text, ParserSettings(), T0)

    suggestions = result.reminder_suggestions
    assert [(s.app_name, s.window_name) for s in suggestions] == [
        ("Slack", None),
        ("Google Chrome", "Invoice 1234"),
    ]
    assert suggestions[0].title == "Quick Slack check detected"
    assert suggestions[0].description == "You briefly opened Slack. Need to return to it later?"
    assert suggestions[1].description == (
        'You quickly checked Google Chrome with window "Invoice 1234". Need to return to it later?'
    )
    assert all(s.should_remind for s in suggestions)


def test_brief_usage_heuristic_ignores_case():
    text = "The user briefly opened slack and quickly checked gmail. Then they went back to work."
    suggestions = extract_brief_usage(text, ParserSettings(), T0).reminder_suggestions

    assert [(s.app_name, s.window_name) for s in suggestions] == [("slack", None), ("gmail", None)]
    assert suggestions[0].title == "Quick slack check detected"


def test_plain_text_without_patterns_yields_nothing(parser):
    result = parser.parse("The user spent the whole morning writing a report in Word.")

    assert result.reminder_suggestions == []
    assert result.general_insights == []


@pytest.mark.parametrize("raw", ["", "   ", None, "{", "}{", "[1, 2, 3]"])
def test_parse_never_raises(parser, raw):
    result = parser.parse(raw)

    assert result.reminder_suggestions == []


def test_failing_strategy_is_skipped():
    def explode(text, options, now):
        raise RuntimeError("boom")

    parser = ResponseParser(strategies=(ParseStrategy("explode", "x", explode),) + DEFAULT_STRATEGIES)

    assert parser.parse(FINISH_PR).reminder_suggestions[0].title == "Finish PR"


def _suggestion(**overrides) -> ReminderSuggestion:
    values = {
        "title": "Finish PR",
        "description": "You opened the pull request and left without commenting.",
        "app_name": "GitHub",
    }
    values.update(overrides)
    return ReminderSuggestion(**values)


@pytest.mark.parametrize("overrides", [
    {"description": "x" * 20},
    {"description": "   " + "x" * 20 + "   "},
    {"title": "You opened the pull request and left.", "description": "You opened the pull request and left."},
    {"app_name": "Visual Studio Code Insiders", "description": "visual studio code insiders"},
    {"description": "Title: undefined, App: undefined, please check"},
    {"confidence": 0.69},
])
def test_acceptance_filter_rejects(parser, overrides):
    assert parser.accepts(_suggestion(**overrides)) is False


@pytest.mark.parametrize("overrides", [
    {},
    {"description": "x" * 21},
    {"confidence": 0.7},
    {"confidence": None},
])
def test_acceptance_filter_accepts(parser, overrides):
    assert parser.accepts(_suggestion(**overrides)) is True


def test_min_description_length_is_configurable():
    parser = ResponseParser(ParserSettings(min_description_length=60))

    assert parser.accepts(_suggestion()) is False


def test_each_prompt_format_has_exactly_one_strategy(parser):
    for prompt_format in PromptFormat:
        assert parser.strategy_for(prompt_format.schema).schema == prompt_format.schema

    with pytest.raises(LookupError):
        parser.strategy_for("reminders-xml/1")


def test_embedded_json_ignores_unrelated_objects():
    assert extract_embedded_json('{"status": "ok"}', ParserSettings(), T0) is None
