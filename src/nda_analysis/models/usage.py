"""
Token usage reported by each stage.
"""

from pydantic import BaseModel


class TokenUsage(BaseModel):
    """Input and output tokens consumed by a stage or a single model call."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, input_tokens: int, output_tokens: int) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
