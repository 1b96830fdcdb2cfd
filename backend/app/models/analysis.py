"""Request bodies accepted by the analysis routes and the LLM result they produce."""

from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

# Responses longer than this are flagged as comprehensive
COMPREHENSIVE_THRESHOLD = 5000

BrandName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
CompetitorName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Topic = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
CustomPrompt = Annotated[str, StringConstraints(strip_whitespace=True, min_length=10, max_length=500)]
Priority = Literal["low", "normal", "high"]


class CamelModel(BaseModel):
    """JSON uses camelCase keys, Python code uses snake_case attributes."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


def _check_website_url(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Website URL must be a valid HTTP or HTTPS URL")
    return value


def _check_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    # reserved domains such as .test are accepted, malformed addresses are not
    try:
        validate_email(value, check_deliverability=False, test_environment=True)
    except EmailNotValidError as e:
        raise ValueError(f"Email must be a valid address: {e}")
    return value


class AnalysisRequest(CamelModel):
    """Full request for the comprehensive brand analysis."""
    brand_name: BrandName
    website_url: Optional[str] = None
    email: Optional[str] = None
    competitors: List[CompetitorName] = Field(default_factory=list, max_length=5)
    topics: List[Topic] = Field(default_factory=list, max_length=4)
    prompts: List[CustomPrompt] = Field(default_factory=list, max_length=4)
    personas: str = Field(default="", max_length=1000)
    priority: Priority = "normal"
    include_history: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("website_url")
    @classmethod
    def validate_website_url(cls, v):
        return _check_website_url(v)

    @field_validator("email", mode="before")
    @classmethod
    def empty_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v):
        return _check_email(v)

    @field_validator("personas", mode="before")
    @classmethod
    def none_personas_is_empty(cls, v):
        return "" if v is None else v

    @field_validator("competitors", "topics", "prompts", mode="before")
    @classmethod
    def none_list_is_empty(cls, v):
        return [] if v is None else v


class LegacyAnalysisRequest(CamelModel):
    """Body of the original POST /api/analysis route."""
    brand_name: BrandName
    website_url: Optional[str] = None
    priority: Priority = "normal"
    include_history: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("website_url")
    @classmethod
    def validate_website_url(cls, v):
        return _check_website_url(v)

    def to_analysis_request(self) -> AnalysisRequest:
        return AnalysisRequest(
            brand_name=self.brand_name,
            website_url=self.website_url,
            priority=self.priority,
            include_history=self.include_history,
            metadata=self.metadata,
        )


class BulkAnalysisRequest(CamelModel):
    brands: List[BrandName] = Field(..., min_length=1, max_length=10)


@dataclass
class AnalysisResult:
    """Generated text plus usage data returned by the LLM provider service."""
    text: str
    model: str
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    processing_time_ms: int = 0
    stop_reason: Optional[str] = None
    completion_requested: bool = False
    prompt_length: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def response_length(self) -> int:
        return len(self.text)

    @property
    def quality(self) -> str:
        return "COMPREHENSIVE" if self.response_length > COMPREHENSIVE_THRESHOLD else "STANDARD"
