from fastapi import Request

from app.services.activity_log import InMemoryActivityLog
from app.services.reminder_store import ReminderStore
from app.services.session_controller import SessionController
from app.services.settings_store import SettingsStore


def get_controller(request: Request) -> SessionController:
    return request.app.state.controller


def get_reminder_store(request: Request) -> ReminderStore:
    return request.app.state.reminder_store


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


def get_activity_log(request: Request) -> InMemoryActivityLog:
    return request.app.state.activity_log
