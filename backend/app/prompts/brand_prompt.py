"""Prompt templates for the brand visibility analysis.

Every optional client input is either supplied (``Provided``) or left for the
model to work out (``Synthesize``). Each field has one template per variant and
``render_prompt`` splices in the matching one.
"""

from dataclasses import dataclass
from typing import Generic, List, TypeVar, Union

from app.models.analysis import AnalysisRequest

T = TypeVar("T")

# The model is told to end with this heading; its absence marks a cut-off report.
CLOSING_SECTION_HEADING = "Conclusions and Next Steps"


@dataclass(frozen=True)
class Provided(Generic[T]):
    value: T


@dataclass(frozen=True)
class Synthesize:
    pass


SYNTHESIZE = Synthesize()

Choice = Union[Provided[T], Synthesize]


def choose(value) -> Choice:
    """Provided(value) for non-empty input, SYNTHESIZE otherwise."""
    if value is None:
        return SYNTHESIZE
    if isinstance(value, str):
        value = value.strip()
        return Provided(value) if value else SYNTHESIZE
    items = [v for v in value if v and str(v).strip()]
    return Provided(items) if items else SYNTHESIZE


@dataclass(frozen=True)
class PromptInputs:
    brand_name: str
    website: Choice[str]
    competitors: Choice[List[str]]
    topics: Choice[List[str]]
    personas: Choice[str]
    test_prompts: Choice[List[str]]

    @classmethod
    def from_request(cls, request: AnalysisRequest) -> "PromptInputs":
        return cls(
            brand_name=request.brand_name.strip(),
            website=choose(request.website_url),
            competitors=choose(request.competitors),
            topics=choose(request.topics),
            personas=choose(request.personas),
            test_prompts=choose(request.prompts),
        )


SYSTEM_PROMPT = """You are a senior brand strategist delivering a complete brand visibility analysis for AI assistants and large language model platforms.

Rules:
- Deliver the entire analysis in one response. Do not split it into parts and do not ask whether to continue.
- When current data is unavailable, say so briefly and continue with industry-based analysis.
- Use clear Markdown headings and concrete, actionable recommendations.
- Finish with a section titled "## """ + CLOSING_SECTION_HEADING + """"."""

# Sent once, after the cut-off answer, when the first response was incomplete
COMPLETION_PROMPT = (
    "Your analysis above is incomplete. Complete the previous analysis: continue exactly "
    "where it stopped, do not repeat earlier sections and do not ask whether to continue. "
    'Finish with the "## ' + CLOSING_SECTION_HEADING + '" section.'
)


WEBSITE_TEMPLATES = {
    "provided": "Official website: {value}\nUse it as the primary reference for the brand's offering, positioning and messaging.",
    "synthesize": "No website was supplied. Identify the brand's primary web presence yourself and state which sources you relied on.",
}

COMPETITOR_TEMPLATES = {
    "provided": "Benchmark {brand} against exactly these competitors supplied by the client (do not add or drop any):\n{value}",
    "synthesize": "No competitors were supplied. Identify the 3-5 most relevant direct competitors of {brand} yourself and explain briefly why each was chosen.",
}

TOPIC_TEMPLATES = {
    "provided": "Structure the topic analysis around exactly these client topics:\n{value}",
    "synthesize": "No topics were supplied. Derive the 3-4 most important service or product topics for {brand} from its portfolio.",
}

PERSONA_TEMPLATES = {
    "provided": "Use the client's description of the target personas as the ideal customer profile:\n{value}",
    "synthesize": "No personas were supplied. Develop a primary and a secondary ideal customer profile (role, company size, industry, pain points, search behaviour) yourself.",
}

TEST_PROMPT_TEMPLATES = {
    "provided": "Evaluate how AI assistants answer exactly these client test prompts, one by one:\n{value}",
    "synthesize": "No test prompts were supplied. Write 2-3 realistic buyer prompts per topic (urgent need and strategic planning scenarios) and evaluate how AI assistants would answer them.",
}


BRAND_ANALYSIS_TEMPLATE = """# COMPREHENSIVE BRAND VISIBILITY ANALYSIS FOR {brand}

You are conducting a professional-grade audit of how visible {brand} is when potential customers ask AI assistants (ChatGPT, Claude, Gemini, Perplexity and similar platforms) for recommendations.

## Brand
{website}

## Phase 1: Brand Research and Ideal Customer Profile
- Service portfolio, market positioning and differentiation of {brand}
- Content, thought leadership and client proof points

### Target personas
{personas}

### Strategic topics
{topics}

## Phase 2: Prompt Development and Testing
{test_prompts}

## Phase 3: AI Visibility Audit
- Mention frequency, mention context and recommendation strength for {brand}
- Share of voice against competitors and platform-by-platform differences

### Competitive benchmark
{competitors}

## Phase 4: Strategy and Recommendations
- Visibility gaps against the ideal customer profile and each topic
- Immediate actions (0-3 months), medium-term strategy (3-12 months) and long-term vision (12+ months)
- Implementation roadmap with milestones and success metrics

## Required Output
1. Executive Summary
2. Brand Intelligence Analysis
3. Customer Profile Development
4. AI Platform Visibility Assessment
5. Strategic Recommendations
6. Implementation Roadmap
7. {closing}

Complete every section. End the report with the "## {closing}" section."""


def _bullets(items: List[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def _render_choice(choice: Choice, templates: dict, brand: str) -> str:
    if isinstance(choice, Provided):
        value = choice.value
        text = _bullets(value) if isinstance(value, list) else value
        return templates["provided"].format(value=text, brand=brand)
    if isinstance(choice, Synthesize):
        return templates["synthesize"].format(brand=brand)
    raise TypeError(f"Unexpected prompt choice: {choice!r}")


def render_prompt(request: Union[AnalysisRequest, PromptInputs]) -> str:
    """Render the full analysis instruction for one brand."""
    inputs = request if isinstance(request, PromptInputs) else PromptInputs.from_request(request)
    brand = inputs.brand_name
    return BRAND_ANALYSIS_TEMPLATE.format(
        brand=brand,
        website=_render_choice(inputs.website, WEBSITE_TEMPLATES, brand),
        personas=_render_choice(inputs.personas, PERSONA_TEMPLATES, brand),
        topics=_render_choice(inputs.topics, TOPIC_TEMPLATES, brand),
        test_prompts=_render_choice(inputs.test_prompts, TEST_PROMPT_TEMPLATES, brand),
        competitors=_render_choice(inputs.competitors, COMPETITOR_TEMPLATES, brand),
        closing=CLOSING_SECTION_HEADING,
    )
