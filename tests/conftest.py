import pytest

from properties_translator.app_config import AppConfig


class FakeTranslator:
    """
    Stand-in for the translation service.

    ``responses`` maps an input unit to its translation; a value that is an
    exception instance is raised instead. Unknown inputs are echoed back
    upper-cased so tests can tell translated lines apart.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def translate(self, text, target_language):
        self.calls.append((text, target_language))
        response = self.responses.get(text, text.upper())
        if isinstance(response, Exception):
            raise response
        return response


def make_app_config(**overrides) -> AppConfig:
    values = dict(
        project_root="/test/root",
        language_codes={"de": "German", "es": "Spanish", "fr": "French", "pt": "Portuguese"},
        model_name="gpt-4o-mini",
        openai_api_key=None,
        max_concurrent_api_calls=10,
        rate_limit=1000,
        rate_period=1,
        max_attempts=1,
        request_timeout=5.0,
        dry_run=True,
        batch_size=100,
        max_upload_bytes=5 * 1024 * 1024,
        show_progress=False,
        server_host="127.0.0.1",
        server_port=8787,
    )
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def app_config():
    return make_app_config()


@pytest.fixture
def fake_translator():
    return FakeTranslator()
