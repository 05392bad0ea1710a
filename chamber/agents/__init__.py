"""AI agents package."""

from chamber.agents.ai_agents import (
    ExpenseExtractionAgent,
    ExtractionServiceError,
    parse_ai_response,
)

__all__ = [
    "ExpenseExtractionAgent",
    "ExtractionServiceError",
    "parse_ai_response",
]
