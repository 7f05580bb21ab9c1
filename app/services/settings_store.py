import logging
from typing import Optional
import httpx
from pydantic import ValidationError

from app.config import Settings
from app.schemas.preferences import (
    DEFAULT_MODELS,
    ProviderType,
    UserSettings,
    UserSettingsResponse,
    UserSettingsUpdate,
)
from app.services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "smart-reminder-settings"

LOCAL_PROVIDER_ALIASES = ("ollama", "native-ollama", "local-model")


def settings_from_remote(data: dict, defaults: UserSettings) -> UserSettings:
    """Map the capture service's camelCase settings onto UserSettings."""
    raw_provider = str(data.get("aiProviderType") or data.get("provider_type") or "").lower()
    if not raw_provider:
        provider = defaults.provider_type
    elif raw_provider in LOCAL_PROVIDER_ALIASES:
        provider = ProviderType.LOCAL_MODEL
    else:
        provider = ProviderType.OPENAI_COMPATIBLE

    values = defaults.model_dump()
    values.update(
        provider_type=provider,
        model=data.get("aiModel") or data.get("model") or DEFAULT_MODELS[provider],
        endpoint_url=data.get("aiUrl") or data.get("endpoint_url") or "",
        api_key=data.get("openaiApiKey") or data.get("api_key"),
    )
    for remote_key, field in (("analysisFrequencyMin", "analysis_frequency_minutes"),
                              ("notificationFrequencyMin", "notification_frequency_minutes")):
        if data.get(remote_key) is not None:
            values[field] = data[remote_key]
    if provider == ProviderType.LOCAL_MODEL and raw_provider == "native-ollama":
        values["endpoint_url"] = ""
    return UserSettings(**values)


class SettingsStore:
    """User settings: local key-value entry first, then defaults.

    The remote settings endpoint is consulted once, via ``load_remote``, and a
    successful answer is saved as the local entry.
    """

    def __init__(self, kv: KeyValueStore, app_settings: Settings):
        self._kv = kv
        self._app_settings = app_settings
        self._remote_checked = False

    def defaults(self) -> UserSettings:
        s = self._app_settings
        provider = ProviderType(s.default_provider_type)
        return UserSettings(
            provider_type=provider,
            model=s.default_model or DEFAULT_MODELS[provider],
            analysis_frequency_minutes=s.default_analysis_frequency_minutes,
            notification_frequency_minutes=s.default_notification_frequency_minutes,
        )

    def load(self) -> UserSettings:
        local = self._load_local()
        if local is not None:
            return local
        return self.defaults()

    def _load_local(self) -> Optional[UserSettings]:
        raw = self._kv.get(SETTINGS_KEY)
        if not raw:
            return None
        try:
            return UserSettings.model_validate_json(raw)
        except ValidationError:
            logger.error("Stored settings are invalid; ignoring them")
            return None

    async def load_remote(self) -> Optional[UserSettings]:
        """Fetch settings from the remote endpoint at most once per store."""
        url = self._app_settings.remote_settings_url
        if not url or self._remote_checked or self._load_local() is not None:
            return None
        self._remote_checked = True

        logger.info("Loading settings from %s", url)
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to load settings from %s: %s", url, e)
            return None
        if not isinstance(data, dict):
            return None
        try:
            remote = settings_from_remote(data, self.defaults())
        except ValidationError as e:
            logger.error("Remote settings are invalid: %s", e)
            return None
        self.save(remote)
        return remote

    def save(self, user_settings: UserSettings) -> None:
        self._kv.set(SETTINGS_KEY, user_settings.model_dump_json())

    def update(self, changes: UserSettingsUpdate) -> UserSettings:
        current = self.load()
        update_data = changes.model_dump(exclude_unset=True)
        new_provider = update_data.get("provider_type")
        if new_provider is not None and new_provider != current.provider_type and "model" not in update_data:
            # Reset model when changing provider
            update_data["model"] = DEFAULT_MODELS[ProviderType(new_provider)]
        updated = UserSettings(**{**current.model_dump(), **update_data})
        self.save(updated)
        logger.info("Settings updated: %s", ", ".join(sorted(update_data)) or "no changes")
        return updated

    def reset(self) -> UserSettings:
        self._kv.delete(SETTINGS_KEY)
        return self.load()

    @staticmethod
    def public_view(user_settings: UserSettings) -> UserSettingsResponse:
        return UserSettingsResponse(
            provider_type=user_settings.provider_type,
            model=user_settings.model,
            endpoint_url=user_settings.endpoint_url,
            api_key_set=bool(user_settings.api_key),
            analysis_frequency_minutes=user_settings.analysis_frequency_minutes,
            notification_frequency_minutes=user_settings.notification_frequency_minutes,
        )
