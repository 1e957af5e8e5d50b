"""
LLM service for structured model invocation.

Supports Claude (Anthropic) and GPT-4o (OpenAI) with automatic fallback.
Every call returns token usage alongside the validated output.
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Generic, TypeVar

import anthropic
import openai
import structlog
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from nda_analysis.config import get_settings
from nda_analysis.errors import ProviderUnavailableError, SchemaViolationError
from nda_analysis.models.usage import TokenUsage

logger = structlog.get_logger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Transport-level failures worth retrying; schema problems never are
TRANSIENT_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


@dataclass
class Completion:
    """Raw text response with its token usage."""

    text: str
    usage: TokenUsage
    model: str


@dataclass
class StructuredResult(Generic[SchemaT]):
    """Schema-validated output with the usage of the call that produced it."""

    output: SchemaT
    usage: TokenUsage
    model: str


class LLMService:
    """
    LLM service for NDA analysis.

    Supports Claude Sonnet (primary) and GPT-4o (fallback).
    """

    def __init__(self):
        settings = get_settings()
        self.settings = settings

        # Initialize clients
        self._anthropic: AsyncAnthropic | None = None
        self._openai: AsyncOpenAI | None = None

        if settings.anthropic_api_key:
            self._anthropic = AsyncAnthropic(
                api_key=settings.anthropic_api_key,
                timeout=settings.llm_timeout,
            )
        if settings.openai_api_key:
            self._openai = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.llm_timeout,
            )

        self.primary_provider = settings.primary_llm_provider
        self.primary_model = settings.primary_llm_model
        self.fallback_provider = settings.fallback_llm_provider
        self.fallback_model = settings.fallback_llm_model

    @property
    def anthropic(self) -> AsyncAnthropic:
        if not self._anthropic:
            raise ProviderUnavailableError("Anthropic client not configured. Set ANTHROPIC_API_KEY.")
        return self._anthropic

    @property
    def openai(self) -> AsyncOpenAI:
        if not self._openai:
            raise ProviderUnavailableError("OpenAI client not configured. Set OPENAI_API_KEY.")
        return self._openai

    def health_check(self) -> dict[str, bool]:
        """Report which providers are configured."""
        return {
            "anthropic": self._anthropic is not None,
            "openai": self._openai is not None,
        }

    # =========================================================================
    # Core LLM Calls
    # =========================================================================

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _call_anthropic(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        max_tokens: int | None = None,
    ) -> Completion:
        """Call Anthropic Claude API."""
        response = await self.anthropic.messages.create(
            model=model,
            max_tokens=max_tokens or self.settings.llm_max_tokens,
            temperature=self.settings.llm_temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return Completion(text=text, usage=usage, model=model)

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _call_openai(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        max_tokens: int | None = None,
    ) -> Completion:
        """Call OpenAI API."""
        response = await self.openai.chat.completions.create(
            model=model,
            max_tokens=max_tokens or self.settings.llm_max_tokens,
            temperature=self.settings.llm_temperature,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
            )
        return Completion(
            text=response.choices[0].message.content or "",
            usage=usage,
            model=model,
        )

    async def _call(
        self,
        provider: str,
        system_prompt: str,
        user_prompt: str,
        model: str,
        max_tokens: int | None,
    ) -> Completion | None:
        if provider == "anthropic" and self._anthropic:
            return await self._call_anthropic(system_prompt, user_prompt, model, max_tokens)
        if provider == "openai" and self._openai:
            return await self._call_openai(system_prompt, user_prompt, model, max_tokens)
        return None

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
        max_tokens: int | None = None,
        use_fallback: bool = True,
    ) -> Completion:
        """
        Generate LLM response with automatic fallback.

        ``model`` overrides the primary model only; the fallback provider
        always uses its configured model.
        """
        # Try primary provider
        try:
            completion = await self._call(
                self.primary_provider,
                system_prompt,
                user_prompt,
                model or self.primary_model,
                max_tokens,
            )
            if completion is not None:
                return completion
        except Exception as e:
            logger.warning(
                "primary_llm_failed",
                provider=self.primary_provider,
                error=str(e),
            )
            if not use_fallback:
                raise

        # Try fallback provider
        try:
            completion = await self._call(
                self.fallback_provider,
                system_prompt,
                user_prompt,
                self.fallback_model,
                max_tokens,
            )
            if completion is not None:
                return completion
        except Exception as e:
            logger.error(
                "fallback_llm_failed",
                provider=self.fallback_provider,
                error=str(e),
            )
            raise

        raise ProviderUnavailableError(
            "No LLM provider available. Set ANTHROPIC_API_KEY or OPENAI_API_KEY."
        )

    # =========================================================================
    # Structured Output
    # =========================================================================

    @staticmethod
    def _parse_json(text: str) -> Any:
        """Extract JSON from LLM response text."""
        if "```json" in text:
            start = text.find("```json") + 7
            end = text.find("```", start)
            text = text[start:end].strip()
        elif "```" in text:
            start = text.find("```") + 3
            end = text.find("```", start)
            text = text[start:end].strip()

        try:
            return json.loads(text)
        except json.JSONDecodeError:
            # Try to find JSON object or array
            for opener, closer in [("{", "}"), ("[", "]")]:
                start = text.find(opener)
                end = text.rfind(closer) + 1
                if start >= 0 and end > start:
                    try:
                        return json.loads(text[start:end])
                    except json.JSONDecodeError:
                        continue
            return None

    @staticmethod
    def _schema_instructions(schema: type[BaseModel]) -> str:
        return (
            "\n\n## Output Format\n"
            "Respond with a single JSON object that validates against this JSON Schema. "
            "Return JSON only, with no surrounding prose.\n"
            f"{json.dumps(schema.model_json_schema(), indent=2)}"
        )

    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: type[SchemaT],
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> StructuredResult[SchemaT]:
        """
        Generate a response and validate it against ``schema``.

        Raises SchemaViolationError (carrying the call's usage) when the
        response is not valid JSON for the schema.
        """
        completion = await self.generate(
            system_prompt + self._schema_instructions(schema),
            user_prompt,
            model=model,
            max_tokens=max_tokens,
        )

        parsed = self._parse_json(completion.text)
        if parsed is None:
            raise SchemaViolationError(
                f"{schema.__name__}: response is not valid JSON",
                input_tokens=completion.usage.input_tokens,
                output_tokens=completion.usage.output_tokens,
                raw_text=completion.text,
            )

        try:
            output = schema.model_validate(parsed)
        except ValidationError as e:
            logger.warning(
                "llm_schema_violation",
                schema=schema.__name__,
                model=completion.model,
                errors=e.error_count(),
            )
            raise SchemaViolationError(
                f"{schema.__name__}: {e.error_count()} validation error(s)",
                details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
                input_tokens=completion.usage.input_tokens,
                output_tokens=completion.usage.output_tokens,
                raw_text=completion.text,
            ) from e

        logger.debug(
            "llm_structured_output",
            schema=schema.__name__,
            model=completion.model,
            input_tokens=completion.usage.input_tokens,
            output_tokens=completion.usage.output_tokens,
        )
        return StructuredResult(output=output, usage=completion.usage, model=completion.model)


@lru_cache()
def get_llm_service() -> LLMService:
    """Get cached LLM service instance."""
    return LLMService()
