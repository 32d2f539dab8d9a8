import pytest
from fastapi.testclient import TestClient

from recipe_scraper.app.api.deps import get_llm_service
from recipe_scraper.app.core.config import Settings
from recipe_scraper.app.main import create_app
from recipe_scraper.app.services.url_parsing.extractors.llm import LLMRecipeService
from recipe_scraper.app.services.url_parsing.llm_cache import ResponseCache


class FakeProvider:
    """Replays queued results; exceptions in the queue are raised."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def generate(self, **kwargs):
        self.calls.append(kwargs)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def llm_settings():
    return Settings(llm_base_url="http://llm.test", _env_file=None)


@pytest.fixture
def make_llm_service(llm_settings):
    def _make(responses, settings=None):
        provider = FakeProvider(responses)
        service = LLMRecipeService(
            provider=provider,
            cache=ResponseCache(ttl_seconds=60),
            settings=settings or llm_settings,
        )
        return service, provider

    return _make


@pytest.fixture
def app():
    app = create_app()
    app.dependency_overrides[get_llm_service] = lambda: None
    return app


@pytest.fixture
def client(app):
    return TestClient(app)
