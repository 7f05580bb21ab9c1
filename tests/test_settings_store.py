import httpx
import pytest
import respx

from app.config import Settings
from app.schemas.preferences import ProviderType, UserSettings, UserSettingsUpdate
from app.services.settings_store import SETTINGS_KEY, SettingsStore, settings_from_remote

REMOTE_URL = "http://localhost:3030/settings"


@pytest.fixture
def app_settings():
    return Settings(database_url="sqlite://", remote_settings_url=None)


def test_defaults_when_nothing_is_stored(kv, app_settings):
    loaded = SettingsStore(kv, app_settings).load()

    assert loaded.provider_type == ProviderType.LOCAL_MODEL
    assert loaded.model == "llama3.2:latest"
    assert loaded.analysis_frequency_minutes == 5
    assert loaded.notification_frequency_minutes == 30


def test_update_is_persisted(kv, app_settings):
    store = SettingsStore(kv, app_settings)

    store.update(UserSettingsUpdate(analysis_frequency_minutes=2, api_key="sk-test"))

    reloaded = SettingsStore(kv, app_settings).load()
    assert reloaded.analysis_frequency_minutes == 2
    assert reloaded.api_key == "sk-test"
    assert SettingsStore.public_view(reloaded).api_key_set is True


def test_switching_provider_resets_model(kv, app_settings):
    store = SettingsStore(kv, app_settings)

    updated = store.update(UserSettingsUpdate(provider_type=ProviderType.OPENAI_COMPATIBLE))
    assert updated.model == "gpt-3.5-turbo"

    updated = store.update(UserSettingsUpdate(provider_type=ProviderType.LOCAL_MODEL, model="mistral"))
    assert updated.model == "mistral"


def test_reset_returns_defaults(kv, app_settings):
    store = SettingsStore(kv, app_settings)
    store.update(UserSettingsUpdate(analysis_frequency_minutes=9))

    assert store.reset().analysis_frequency_minutes == 5
    assert kv.get(SETTINGS_KEY) is None


def test_invalid_stored_settings_are_ignored(kv, app_settings):
    kv.set(SETTINGS_KEY, '{"analysis_frequency_minutes": 99}')

    assert SettingsStore(kv, app_settings).load().analysis_frequency_minutes == 5


def test_remote_settings_mapping():
    mapped = settings_from_remote(
        {
            "aiProviderType": "openai",
            "aiModel": "gpt-4o-mini",
            "aiUrl": "https://llm.example.com/v1/chat/completions",
            "openaiApiKey": "sk-remote",
            "analysisFrequencyMin": 3,
        },
        UserSettings(),
    )

    assert mapped.provider_type == ProviderType.OPENAI_COMPATIBLE
    assert mapped.model == "gpt-4o-mini"
    assert mapped.endpoint_url == "https://llm.example.com/v1/chat/completions"
    assert mapped.api_key == "sk-remote"
    assert mapped.analysis_frequency_minutes == 3
    assert mapped.notification_frequency_minutes == 30


def test_native_ollama_uses_default_endpoint():
    mapped = settings_from_remote({"aiProviderType": "native-ollama", "aiUrl": "http://ignored"}, UserSettings())

    assert mapped.provider_type == ProviderType.LOCAL_MODEL
    assert mapped.endpoint_url == ""
    assert mapped.model == "llama3.2:latest"


@pytest.mark.asyncio
async def test_remote_settings_are_fetched_once_and_saved(kv):
    store = SettingsStore(kv, Settings(database_url="sqlite://", remote_settings_url=REMOTE_URL))

    with respx.mock(assert_all_called=True) as router:
        route = router.get(REMOTE_URL).respond(200, json={"aiProviderType": "ollama", "aiModel": "phi3"})
        fetched = await store.load_remote()
        assert await store.load_remote() is None

    assert fetched.model == "phi3"
    assert store.load().model == "phi3"
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_unreachable_remote_settings_are_tried_once(kv):
    store = SettingsStore(kv, Settings(database_url="sqlite://", remote_settings_url=REMOTE_URL))

    with respx.mock(assert_all_called=True) as router:
        route = router.get(REMOTE_URL).mock(side_effect=httpx.ConnectError("refused"))
        assert await store.load_remote() is None
        assert await store.load_remote() is None
        loaded = store.load()

    assert route.call_count == 1
    assert loaded.model == "llama3.2:latest"
    assert kv.get(SETTINGS_KEY) is None


def test_load_makes_no_remote_request(kv):
    store = SettingsStore(kv, Settings(database_url="sqlite://", remote_settings_url=REMOTE_URL))

    with respx.mock(assert_all_mocked=True, assert_all_called=False) as router:
        route = router.get(REMOTE_URL).respond(200, json={"aiModel": "phi3"})
        assert store.load().model == "llama3.2:latest"

    assert route.call_count == 0
