"""
Per-run token budget tracking.

One ``BudgetTracker`` is created per document run and passed explicitly to
every stage. Stages record their usage through the ``stage()`` context
manager so it is written exactly once, including when the stage fails.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

import structlog

from nda_analysis.config import get_settings
from nda_analysis.models.usage import TokenUsage

logger = structlog.get_logger(__name__)


@dataclass
class StageUsage:
    """Token usage for one stage, accumulated across its model calls."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, input_tokens: int, output_tokens: int) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens

    def to_token_usage(self) -> TokenUsage:
        return TokenUsage(input_tokens=self.input_tokens, output_tokens=self.output_tokens)


@dataclass
class BudgetTracker:
    """Accumulates token usage per stage against a document budget."""

    budget: int = field(default_factory=lambda: get_settings().token_budget)
    warning_ratio: float = field(default_factory=lambda: get_settings().budget_warning_ratio)
    input_cost_per_million: float = field(
        default_factory=lambda: get_settings().input_cost_per_million
    )
    output_cost_per_million: float = field(
        default_factory=lambda: get_settings().output_cost_per_million
    )
    _usage: dict[str, StageUsage] = field(default_factory=dict)

    # =========================================================================
    # Recording
    # =========================================================================

    def record(self, stage: str, input_tokens: int, output_tokens: int) -> None:
        """Add usage for a stage. Totals only ever increase."""
        usage = self._usage.setdefault(stage, StageUsage())
        usage.add(max(input_tokens, 0), max(output_tokens, 0))

        if self.is_over_budget():
            logger.warning(
                "token_budget_exceeded",
                stage=stage,
                total_tokens=self.total_tokens,
                budget=self.budget,
            )
        elif self.is_warning():
            logger.info(
                "token_budget_warning",
                stage=stage,
                total_tokens=self.total_tokens,
                budget=self.budget,
            )

    @contextmanager
    def stage(self, name: str) -> Iterator[StageUsage]:
        """
        Scope a stage's usage.

        Yields an accumulator the stage adds to as it makes model calls;
        the accumulated total is recorded once on exit, success or failure.
        """
        usage = StageUsage()
        try:
            yield usage
        finally:
            self.record(name, usage.input_tokens, usage.output_tokens)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def total_tokens(self) -> int:
        return sum(u.total for u in self._usage.values())

    @property
    def remaining(self) -> int:
        return max(0, self.budget - self.total_tokens)

    def is_warning(self) -> bool:
        """True once usage reaches the warning ratio of the budget."""
        return self.total_tokens >= self.budget * self.warning_ratio

    def is_over_budget(self) -> bool:
        return self.total_tokens > self.budget

    def stage_usage(self, stage: str) -> StageUsage:
        return self._usage.get(stage, StageUsage())

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return (
            input_tokens / 1_000_000 * self.input_cost_per_million
            + output_tokens / 1_000_000 * self.output_cost_per_million
        )

    def get_usage(self) -> dict[str, Any]:
        """Usage report: per stage and total, with estimated cost in USD."""
        by_stage = {
            name: {
                "input": usage.input_tokens,
                "output": usage.output_tokens,
                "total": usage.total,
                "estimated_cost": round(
                    self.estimate_cost(usage.input_tokens, usage.output_tokens), 6
                ),
            }
            for name, usage in self._usage.items()
        }
        total_input = sum(u.input_tokens for u in self._usage.values())
        total_output = sum(u.output_tokens for u in self._usage.values())
        return {
            "by_stage": by_stage,
            "total": {
                "input": total_input,
                "output": total_output,
                "total": total_input + total_output,
                "estimated_cost": round(self.estimate_cost(total_input, total_output), 6),
            },
            "budget": self.budget,
            "remaining": self.remaining,
            "is_warning": self.is_warning(),
            "is_over_budget": self.is_over_budget(),
        }
