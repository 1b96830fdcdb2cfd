"""Pytest configuration and fixtures.

Provides fixtures for:
- Settings pointing the report root at a temporary directory
- A scripted stand-in for the Anthropic async client
- FastAPI test client wired to both
"""

from types import SimpleNamespace
from typing import Any, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from app.services.llm_provider import LLMProviderService
from app.services.report_store import ReportStore

TEST_API_KEY = "test-api-key-123456"

COMPLETE_TEXT = (
    "## Executive Summary\nAcme is well known.\n\n"
    "## Conclusions and Next Steps\nPublish more comparison content."
)


# ---------------------------------------------------------------------------
# Mock Clients
# ---------------------------------------------------------------------------


def anthropic_response(
    text: str = COMPLETE_TEXT,
    stop_reason: str = "end_turn",
    input_tokens: int = 100,
    output_tokens: int = 200,
    model: str = "claude-test",
) -> SimpleNamespace:
    """Object shaped like anthropic.types.Message."""
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
        model=model,
    )


def upstream_response(status_code: int, headers: Optional[dict] = None) -> httpx.Response:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return httpx.Response(status_code, headers=headers or {}, request=request)


class MockMessages:
    """Returns queued responses (or raises queued exceptions), then the default."""

    def __init__(self, responses: List[Any], default: Any = None) -> None:
        self.responses = list(responses)
        self.default = default if default is not None else anthropic_response()
        self.calls: List[dict] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        item = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, Exception):
            raise item
        return item


class MockAnthropicClient:
    def __init__(self, *responses: Any, default: Any = None) -> None:
        self.messages = MockMessages(list(responses), default)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Settings Fixtures
# ---------------------------------------------------------------------------


def make_settings(tmp_path, **overrides: Any) -> Settings:
    values = {
        "_env_file": None,
        "environment": "test",
        "api_key": TEST_API_KEY,
        "llm_provider": "anthropic",
        "anthropic_api_key": "sk-ant-test",
        "anthropic_model": "claude-test",
        "reports_dir": str(tmp_path / "reports"),
        "rate_limit_max_requests": 0,
        "log_level": "DEBUG",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def store(settings: Settings) -> ReportStore:
    return ReportStore(settings.reports_path)


@pytest.fixture
def mock_client() -> MockAnthropicClient:
    return MockAnthropicClient()


@pytest.fixture
def llm_service(settings: Settings, mock_client: MockAnthropicClient) -> LLMProviderService:
    return LLMProviderService(settings, client=mock_client)


# ---------------------------------------------------------------------------
# App Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app(settings: Settings, llm_service: LLMProviderService):
    return create_app(settings, llm_service=llm_service)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> dict:
    return {"x-api-key": TEST_API_KEY}
