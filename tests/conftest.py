from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from recipe_harvester.app.api.deps import get_pipeline
from recipe_harvester.app.core.config import Settings
from recipe_harvester.app.main import create_app
from recipe_harvester.app.services.url_parsing.errors import FetchError, InvalidUrlError
from recipe_harvester.app.services.url_parsing.models import ExtractionResult, RecipeDraft

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text()


@pytest.fixture
def caesar_salad_html():
    return load_fixture("pages/caesar_salad.html")


@pytest.fixture
def settings():
    return Settings(_env_file=None, IMAGE_RESOLUTION_ENABLED=False, LLM_TIMEOUT_SECONDS=5)


@pytest.fixture
def mock_transport(monkeypatch):
    """Route every ``httpx.AsyncClient`` through a MockTransport built from ``handler``."""
    real_client = httpx.AsyncClient

    def install(handler):
        transport = httpx.MockTransport(handler)

        def client_factory(*args, **kwargs):
            kwargs.pop("transport", None)
            return real_client(*args, transport=transport, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", client_factory)
        return transport

    return install


class FakePipeline:
    def __init__(self):
        self.calls = []

    async def extract(self, url, html=None):
        self.calls.append((url, html))
        if url.startswith("ftp://"):
            raise InvalidUrlError("URL must start with http or https.")
        if "unreachable" in url:
            raise FetchError(f"Failed to fetch {url} after 3 attempts. Last error: boom", url=url, attempts=3)
        return ExtractionResult(
            recipe=RecipeDraft(
                title="Parsed Recipe",
                ingredients=["1 cup flour"],
                instructions=["Mix well."],
                source_url=url,
            ),
            confidence=0.9,
            method="json-ld",
        )


@pytest.fixture
def fake_pipeline():
    return FakePipeline()


@pytest.fixture
def app(fake_pipeline):
    app = create_app()
    app.dependency_overrides[get_pipeline] = lambda: fake_pipeline
    return app


@pytest.fixture
def client(app):
    return TestClient(app)
