"""Exceptions raised by the NDA analysis pipeline."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class AnalysisError(Exception):
    """
    Base exception for analysis pipeline errors.

    Attributes:
        message: Human-readable error description.
        stage: Pipeline stage that raised the error, if known.
        details: Additional error details.
    """
    message: str
    stage: Optional[str] = None
    details: Optional[dict] = field(default_factory=dict)

    def __post_init__(self):
        if self.details is None:
            self.details = {}
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.stage:
            return f"{self.message} | Stage: {self.stage}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "stage": self.stage,
            "details": self.details,
        }


@dataclass
class SchemaViolationError(AnalysisError):
    """
    The model returned output that does not satisfy the requested schema.

    Carries the token usage of the failed call so the caller can still
    account for it, and the raw text for diagnosis.
    """
    input_tokens: int = 0
    output_tokens: int = 0
    raw_text: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["input_tokens"] = self.input_tokens
        data["output_tokens"] = self.output_tokens
        data["raw_text"] = self.raw_text[:500]
        return data


@dataclass
class ClassificationEmptyOutputError(AnalysisError):
    """The classifier returned zero entries for a non-empty chunk set."""
    chunk_count: int = 0
    first_index: Optional[int] = None
    last_index: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            chunk_count=self.chunk_count,
            first_index=self.first_index,
            last_index=self.last_index,
        )
        return data


@dataclass
class RetrievalError(AnalysisError):
    """Embedding or reference-store failure during evidence retrieval."""
    query: str = ""


@dataclass
class ValidationGateError(AnalysisError):
    """A pipeline validation gate rejected the document."""
    code: str = ""
    user_message: str = ""
    suggestion: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            code=self.code,
            user_message=self.user_message,
            suggestion=self.suggestion,
        )
        return data


@dataclass
class ProviderUnavailableError(AnalysisError):
    """No language-model provider is configured."""


# Plain-language messages for validation gates
VALIDATION_MESSAGES: dict[str, dict[str, str]] = {
    "EMPTY_DOCUMENT": {
        "user_message": "We couldn't extract any text from this document.",
        "suggestion": "Try a different file format or check that the PDF isn't encrypted.",
    },
    "NO_CHUNKS": {
        "user_message": "The document couldn't be processed into analyzable sections.",
        "suggestion": "Try a different document or file format.",
    },
    "ZERO_CLAUSES": {
        "user_message": "We couldn't find any clauses in this document.",
        "suggestion": "Check that the file contains actual contract text, not just headers or images.",
    },
}


def validation_gate_error(code: str, stage: str) -> ValidationGateError:
    """Build a ValidationGateError from one of the known gate codes."""
    message = VALIDATION_MESSAGES[code]
    return ValidationGateError(
        message=f"Validation gate failed: {code}",
        stage=stage,
        code=code,
        user_message=message["user_message"],
        suggestion=message["suggestion"],
    )
