"""Agent selection strategies."""

from agentreuse.agents.strategies.balanced import (
    NO_MATCH_REASON,
    AgentCandidate,
    BalancedSelectionStrategy,
    SelectionCriteria,
    SelectionEvaluation,
    SelectionResult,
)

__all__ = [
    "NO_MATCH_REASON",
    "AgentCandidate",
    "BalancedSelectionStrategy",
    "SelectionCriteria",
    "SelectionEvaluation",
    "SelectionResult",
]
