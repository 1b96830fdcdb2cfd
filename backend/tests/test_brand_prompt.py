"""Tests for the analysis prompt builder."""

import pytest

from app.models.analysis import AnalysisRequest
from app.prompts.brand_prompt import (
    CLOSING_SECTION_HEADING,
    SYNTHESIZE,
    PromptInputs,
    Provided,
    choose,
    render_prompt,
)


class TestChoose:
    def test_missing_values_synthesize(self):
        assert choose(None) is SYNTHESIZE
        assert choose("") is SYNTHESIZE
        assert choose("   ") is SYNTHESIZE
        assert choose([]) is SYNTHESIZE
        assert choose(["", "  "]) is SYNTHESIZE

    def test_present_values_are_provided(self):
        assert choose(" https://acme.test ") == Provided("https://acme.test")
        assert choose(["Globex", ""]) == Provided(["Globex"])


class TestRenderPrompt:
    def test_minimal_request_synthesizes_everything(self):
        prompt = render_prompt(AnalysisRequest(brand_name="Acme Corp"))

        assert "FOR Acme Corp" in prompt
        assert "No website was supplied" in prompt
        assert "No competitors were supplied" in prompt
        assert "No topics were supplied" in prompt
        assert "No personas were supplied" in prompt
        assert "No test prompts were supplied" in prompt
        assert CLOSING_SECTION_HEADING in prompt

    def test_supplied_fields_are_used_verbatim(self):
        request = AnalysisRequest(
            brand_name="Acme Corp",
            website_url="https://acme.test",
            competitors=["Globex", "Initech"],
            topics=["Cloud migration"],
            personas="CTOs of logistics companies",
            prompts=["Who is the best cloud migration partner?"],
        )
        prompt = render_prompt(request)

        assert "Official website: https://acme.test" in prompt
        assert "exactly these competitors" in prompt
        assert "- Globex\n- Initech" in prompt
        assert "- Cloud migration" in prompt
        assert "CTOs of logistics companies" in prompt
        assert "- Who is the best cloud migration partner?" in prompt
        assert "No competitors were supplied" not in prompt
        assert "No personas were supplied" not in prompt

    def test_mixed_fields(self):
        prompt = render_prompt(AnalysisRequest(brand_name="Acme", topics=["Security"]))
        assert "- Security" in prompt
        assert "No topics were supplied" not in prompt
        assert "No competitors were supplied" in prompt

    def test_deterministic(self):
        request = AnalysisRequest(brand_name="Acme", competitors=["Globex"])
        assert render_prompt(request) == render_prompt(request)

    def test_accepts_prompt_inputs(self):
        inputs = PromptInputs(
            brand_name="Acme",
            website=SYNTHESIZE,
            competitors=Provided(["Globex"]),
            topics=SYNTHESIZE,
            personas=SYNTHESIZE,
            test_prompts=SYNTHESIZE,
        )
        assert "- Globex" in render_prompt(inputs)

    def test_unknown_variant_is_an_error(self):
        inputs = PromptInputs(
            brand_name="Acme",
            website="https://acme.test",
            competitors=SYNTHESIZE,
            topics=SYNTHESIZE,
            personas=SYNTHESIZE,
            test_prompts=SYNTHESIZE,
        )
        with pytest.raises(TypeError):
            render_prompt(inputs)
