"""LLM Provider abstraction layer supporting multiple providers."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import anthropic
import httpx
import openai
from fastapi import Request

from app.config import Settings
from app.errors import UpstreamError
from app.models.analysis import AnalysisResult
from app.prompts.brand_prompt import CLOSING_SECTION_HEADING, COMPLETION_PROMPT, SYSTEM_PROMPT

logger = logging.getLogger(__name__)

# Provider stop reasons that mean the token budget ran out
TRUNCATION_STOP_REASONS = {"max_tokens", "length"}

# Phrases models use when they stop early and offer to go on
CONTINUATION_PHRASES = (
    "continued in part",
    "[note: i can continue",
    "would you like me to continue",
    "would you like me to proceed",
)


@dataclass
class Completion:
    """A single provider response."""
    text: str
    stop_reason: Optional[str]
    input_tokens: int
    output_tokens: int
    model: str


def needs_completion(text: str, stop_reason: Optional[str]) -> bool:
    """True when a response was cut off or explicitly stops short of the full report."""
    lowered = (text or "").lower()
    if any(phrase in lowered for phrase in CONTINUATION_PHRASES):
        return True
    truncated = (stop_reason or "").lower() in TRUNCATION_STOP_REASONS
    return truncated and CLOSING_SECTION_HEADING.lower() not in lowered


def _retry_after(headers) -> Optional[int]:
    if headers is None:
        return None
    value = headers.get("retry-after")
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


class LLMProviderService:
    """Service for interacting with the configured LLM provider."""

    PROVIDERS = ("anthropic", "openai", "ollama")

    DISPLAY_NAMES = {
        "anthropic": "Claude",
        "openai": "OpenAI",
        "ollama": "Ollama",
    }

    def __init__(self, settings: Settings, client: Any = None):
        if settings.llm_provider not in self.PROVIDERS:
            raise ValueError(f"Unknown provider: {settings.llm_provider}")
        self.provider = settings.llm_provider
        self.model = settings.llm_model
        self.max_tokens = settings.max_tokens
        self.temperature = settings.temperature
        self.status_max_tokens = settings.status_max_tokens
        self.api_key = {
            "anthropic": settings.anthropic_api_key,
            "openai": settings.openai_api_key,
            "ollama": "",
        }[self.provider]
        self.base_url = settings.ollama_base_url.rstrip("/")
        self._client = client

    @property
    def display_name(self) -> str:
        return self.DISPLAY_NAMES[self.provider]

    def get_active_provider_info(self) -> Dict:
        """Get information about the active provider."""
        return {
            "provider": self.provider,
            "display_name": self.display_name,
            "model": self.model,
            "configured": bool(self.api_key) or self.provider == "ollama",
        }

    def _get_client(self):
        if self._client is not None:
            return self._client
        if self.provider != "ollama" and not self.api_key:
            raise UpstreamError(
                UpstreamError.UNAUTHORIZED,
                f"{self.display_name} API key is not configured.",
                provider=self.provider,
            )
        if self.provider == "anthropic":
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        elif self.provider == "openai":
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        else:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=600.0)
        return self._client

    async def aclose(self) -> None:
        if self._client is None:
            return
        closer = getattr(self._client, "aclose", None) or getattr(self._client, "close", None)
        if closer is not None:
            await closer()
        self._client = None

    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        system: Optional[str] = SYSTEM_PROMPT,
    ) -> Completion:
        """Send one chat request to the active provider."""
        max_tokens = max_tokens or self.max_tokens
        client = self._get_client()
        try:
            if self.provider == "anthropic":
                return await self._complete_anthropic(client, messages, max_tokens, system)
            elif self.provider == "openai":
                return await self._complete_openai(client, messages, max_tokens, system)
            return await self._complete_ollama(client, messages, max_tokens, system)
        except UpstreamError:
            raise
        except Exception as e:
            error = self._to_upstream_error(e)
            logger.error(f"[LLM] {self.provider} request failed ({error.kind}): {e}")
            raise error from e

    async def _complete_anthropic(self, client, messages, max_tokens, system) -> Completion:
        """Complete using Anthropic API."""
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        response = await client.messages.create(**kwargs)

        text = ""
        for block in response.content:
            if hasattr(block, "text"):
                text += block.text

        return Completion(
            text=text,
            stop_reason=response.stop_reason,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model or self.model,
        )

    async def _complete_openai(self, client, messages, max_tokens, system) -> Completion:
        """Complete using OpenAI API."""
        if system:
            messages = [{"role": "system", "content": system}] + messages
        response = await client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=max_tokens,
        )
        choice = response.choices[0]
        usage = response.usage
        return Completion(
            text=choice.message.content or "",
            stop_reason=choice.finish_reason,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=response.model or self.model,
        )

    async def _complete_ollama(self, client, messages, max_tokens, system) -> Completion:
        """Complete using local Ollama."""
        if system:
            messages = [{"role": "system", "content": system}] + messages
        response = await client.post(
            "/api/chat",
            json={
                "model": self.model,
                "messages": messages,
                "stream": False,
                "options": {
                    "temperature": self.temperature,
                    "num_predict": max_tokens,
                },
            },
        )
        response.raise_for_status()
        result = response.json()
        return Completion(
            text=result.get("message", {}).get("content", ""),
            stop_reason=result.get("done_reason"),
            input_tokens=result.get("prompt_eval_count", 0),
            output_tokens=result.get("eval_count", 0),
            model=result.get("model", self.model),
        )

    def _to_upstream_error(self, exc: Exception) -> UpstreamError:
        name = self.display_name
        status = None
        headers = None
        if isinstance(exc, (anthropic.APIStatusError, openai.APIStatusError)):
            status = exc.status_code
            headers = exc.response.headers
        elif isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            headers = exc.response.headers
        elif isinstance(exc, (anthropic.APIConnectionError, openai.APIConnectionError, httpx.TransportError)):
            return UpstreamError(
                UpstreamError.UPSTREAM_UNAVAILABLE,
                f"{name} API is unreachable. Please try again later.",
                provider=self.provider,
            )

        if status == 429:
            return UpstreamError(
                UpstreamError.RATE_LIMITED,
                f"{name} API rate limit exceeded. Please try again later.",
                provider=self.provider,
                status_code=status,
                retry_after=_retry_after(headers),
            )
        if status == 401:
            return UpstreamError(
                UpstreamError.UNAUTHORIZED,
                f"{name} API key is invalid or expired.",
                provider=self.provider,
                status_code=status,
            )
        if status == 403:
            return UpstreamError(
                UpstreamError.UNAUTHORIZED,
                f"{name} API access forbidden. Check your API key permissions.",
                provider=self.provider,
                status_code=status,
            )
        if status in (400, 413):
            return UpstreamError(
                UpstreamError.BAD_REQUEST,
                f"{name} API bad request: {exc}",
                provider=self.provider,
                status_code=status,
            )
        if status is not None and status >= 500:
            return UpstreamError(
                UpstreamError.UPSTREAM_UNAVAILABLE,
                f"{name} API server error. Please try again later.",
                provider=self.provider,
                status_code=status,
            )
        return UpstreamError(
            UpstreamError.UNKNOWN,
            f"{name} API error: {exc}",
            provider=self.provider,
            status_code=status,
        )

    async def generate(self, prompt: str) -> AnalysisResult:
        """Run the analysis prompt, asking once more if the answer came back incomplete."""
        started = time.perf_counter()
        messages = [{"role": "user", "content": prompt}]

        logger.info(f"[LLM] Sending analysis to {self.provider} ({self.model}), prompt length: {len(prompt)} chars")
        first = await self.complete(messages)

        text = first.text
        input_tokens = first.input_tokens
        output_tokens = first.output_tokens
        stop_reason = first.stop_reason
        model = first.model
        completion_requested = False

        if needs_completion(first.text, first.stop_reason):
            completion_requested = True
            logger.info(
                f"[LLM] Response incomplete (stop_reason={first.stop_reason}, {len(text)} chars), "
                "requesting completion"
            )
            follow_up = messages + [
                {"role": "assistant", "content": first.text},
                {"role": "user", "content": COMPLETION_PROMPT},
            ]
            try:
                extra = await self.complete(follow_up)
            except UpstreamError as e:
                logger.warning(f"[LLM] Completion request failed, keeping original response: {e}")
            else:
                text = text + extra.text
                input_tokens += extra.input_tokens
                output_tokens += extra.output_tokens
                stop_reason = extra.stop_reason

        processing_time = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"[LLM] Analysis finished: {len(text)} chars, "
            f"{input_tokens + output_tokens} tokens ({input_tokens} in / {output_tokens} out), {processing_time}ms"
        )
        return AnalysisResult(
            text=text,
            model=model,
            provider=self.provider,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            processing_time_ms=processing_time,
            stop_reason=stop_reason,
            completion_requested=completion_requested,
            prompt_length=len(prompt),
        )

    async def get_status(self) -> Dict:
        """Send a tiny request to check that the provider is reachable."""
        started = time.perf_counter()
        checked = datetime.now().isoformat()
        try:
            await self.complete(
                [{"role": "user", "content": "Hello"}],
                max_tokens=self.status_max_tokens,
                system=None,
            )
        except UpstreamError as e:
            logger.error(f"[LLM] Status check failed: {e}")
            return {
                "status": "error",
                "provider": self.provider,
                "model": self.model,
                "error": e.message,
                "kind": e.kind,
                "lastChecked": checked,
            }
        return {
            "status": "operational",
            "provider": self.provider,
            "model": self.model,
            "maxTokens": self.max_tokens,
            "latencyMs": int((time.perf_counter() - started) * 1000),
            "lastChecked": checked,
        }


def get_llm_service(request: Request) -> LLMProviderService:
    """Dependency to get the LLM service built at startup."""
    return request.app.state.llm_service
