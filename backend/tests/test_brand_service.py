"""Tests for the analysis orchestrator and its bulk variant."""

import json

import anthropic
import pytest

from app.errors import UpstreamError
from app.models.analysis import AnalysisRequest
from app.services.brand_service import BrandAnalysisService
from app.services.llm_provider import LLMProviderService
from tests.conftest import COMPLETE_TEXT, MockAnthropicClient, anthropic_response, upstream_response


def make_service(settings, store, client, save_error_reports=False) -> BrandAnalysisService:
    return BrandAnalysisService(LLMProviderService(settings, client=client), store, save_error_reports)


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_end_to_end(self, settings, store, mock_client):
        service = make_service(settings, store, mock_client)
        request = AnalysisRequest(brand_name="Acme Corp", website_url="https://acme.test", email="a@acme.test")

        result = await service.analyze(request)

        assert result["brandName"] == "Acme Corp"
        assert result["brandFolder"] == "acme_corp"
        assert result["fileName"].startswith("acme_corp_analysis_")
        assert result["fileName"].endswith(f"_{result['requestId'].split('-')[0]}.txt")
        assert result["analysis"] == COMPLETE_TEXT
        assert result["metadata"]["tokensUsed"] == 300
        assert result["metadata"]["analysisQuality"] == "STANDARD"

        content = (store.root / "acme_corp" / result["fileName"]).read_text(encoding="utf-8")
        assert "BRAND: Acme Corp" in content
        assert "WEBSITE: https://acme.test" in content
        assert COMPLETE_TEXT in content

    @pytest.mark.asyncio
    async def test_prompt_reflects_request(self, settings, store, mock_client):
        service = make_service(settings, store, mock_client)
        await service.analyze(AnalysisRequest(brand_name="Acme", competitors=["Globex"]))

        prompt = mock_client.messages.calls[0]["messages"][0]["content"]
        assert "- Globex" in prompt

    @pytest.mark.asyncio
    async def test_upstream_failure_writes_nothing(self, settings, store):
        client = MockAnthropicClient(anthropic.RateLimitError("limit", response=upstream_response(429), body=None))
        service = make_service(settings, store, client)

        with pytest.raises(UpstreamError) as exc_info:
            await service.analyze(AnalysisRequest(brand_name="Acme"))

        assert exc_info.value.kind == UpstreamError.RATE_LIMITED
        assert not store.root.exists() or not any(store.root.rglob("*"))

    @pytest.mark.asyncio
    async def test_error_report_when_enabled(self, settings, store):
        client = MockAnthropicClient(anthropic.AuthenticationError("bad", response=upstream_response(401), body=None))
        service = make_service(settings, store, client, save_error_reports=True)

        with pytest.raises(UpstreamError):
            await service.analyze(AnalysisRequest(brand_name="Acme Corp"))

        [error_file] = list((store.root / "acme_corp").glob("ERROR_*.json"))
        record = json.loads(error_file.read_text(encoding="utf-8"))
        assert record["success"] is False
        assert record["error"]["type"] == UpstreamError.UNAUTHORIZED
        assert store.list_reports() == []


class TestAnalyzeBulk:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort(self, settings, store):
        client = MockAnthropicClient(
            anthropic.BadRequestError("too long", response=upstream_response(400), body=None),
            anthropic_response(),
        )
        service = make_service(settings, store, client)

        data = await service.analyze_bulk(["BrandA", "BrandB"])

        assert [s["brandName"] for s in data["successful"]] == ["BrandB"]
        assert len(data["failed"]) == 1
        assert data["failed"][0]["brandName"] == "BrandA"
        assert data["failed"][0]["type"] == UpstreamError.BAD_REQUEST
        assert data["failed"][0]["error"]
        assert data["summary"] == {"total": 2, "successful": 1, "failed": 1}
        assert [r.brand_folder for r in store.list_reports()] == ["brandb"]

    @pytest.mark.asyncio
    async def test_sequential_order(self, settings, store, mock_client):
        service = make_service(settings, store, mock_client)

        data = await service.analyze_bulk(["One", "Two", "Three"])

        prompts = [call["messages"][0]["content"] for call in mock_client.messages.calls]
        assert [p.split("FOR ", 1)[1].split("\n", 1)[0] for p in prompts] == ["One", "Two", "Three"]
        assert data["summary"]["successful"] == 3
