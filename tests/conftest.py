import pytest
from dotenv import load_dotenv

from slackmoji_notifier.config import Settings
from factories import NOW, FakeGenerator, FakePoster


@pytest.fixture(scope="session", autouse=True)
def _load_env():
    # Load .env once per session to avoid side-effects on import time
    load_dotenv()


@pytest.fixture
def make_settings():
    """
    Builds Settings without reading .env so tests never depend on a developer's local tokens.
    """
    def _make(**overrides) -> Settings:
        values = {
            "SLACK_BOT_TOKEN": "xoxb-test",
            "SLACK_APP_TOKEN": "xapp-test",
            "SLACK_CHANNEL": "C_EMOJI",
            "SLACK_LOG_ONLY": False,
            "LLM_PROVIDER": "openai",
            "LLM_SYSTEM_PROMPT": "",
            "LLM_SYSTEM_PROMPT_FILE": "",
            "OPENAI_API_KEY": "sk-test",
            "ANTHROPIC_API_KEY": "",
            "GOOGLEAI_API_KEY": "",
            "EVENT_THRESHOLD_SECONDS": 60,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def poster():
    return FakePoster()


@pytest.fixture
def clock():
    return lambda: NOW
