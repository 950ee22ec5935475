"""Agent pool core for agent-reuse.

This package provides the scheduling core:
- Agent Registry: workers, capability inverted index, health, notifications
- Workload Monitor: per-worker metrics and overload detection
- Performance Scorer: comparable per-worker performance scores
- Balanced Selection Strategy: composite-score selection
- Agent Pool Manager: reuse-first acquisition, spawn fallback, release policy
- Intelligent Agent Selector: selection and end-to-end task execution

Collaborators (spawner, task executor, task reassigner, consensus gateway)
are protocols in ``agentreuse.agents.protocols`` and
``agentreuse.agents.consensus``.
"""

from agentreuse.agents.consensus import (
    ConsensusGateway,
    ConsensusOutcome,
    ConsensusProposal,
    ProposalState,
    ProposalStatus,
    await_consensus,
    require_consensus,
)
from agentreuse.agents.history import PerformanceHistory
from agentreuse.agents.models import (
    AcquiredAgent,
    AgentMetrics,
    AgentProfile,
    AgentSelection,
    AgentSource,
    AgentStatus,
    ExecutionOptions,
    OptimizationRecommendation,
    OptimizationResult,
    PoolOptimizationResult,
    PoolStatistics,
    RecommendationPriority,
    RecommendationType,
    RegisteredAgent,
    RegistryStatistics,
    SelectionOptions,
    SystemStatistics,
    TaskComplexity,
    TaskContext,
    TaskDefinition,
    TaskResult,
)
from agentreuse.agents.pool import AgentPoolManager, GreedyReuseStrategy, SpawnPlanner
from agentreuse.agents.protocols import (
    ExecutionOutcome,
    Spawner,
    TaskExecutor,
    TaskReassigner,
)
from agentreuse.agents.registry import AgentRegistry, CapabilityAnalysis
from agentreuse.agents.scoring import (
    PerformanceScore,
    PerformanceScorer,
    ScoredCandidate,
    TaskHistorySnapshot,
)
from agentreuse.agents.selector import IntelligentAgentSelector, determine_complexity
from agentreuse.agents.strategies import (
    AgentCandidate,
    BalancedSelectionStrategy,
    SelectionCriteria,
    SelectionResult,
)
from agentreuse.agents.workload import (
    LoadDistribution,
    WorkloadMetrics,
    WorkloadMonitor,
    WorkloadStatistics,
)

__all__ = [
    # Components
    "AgentPoolManager",
    "AgentRegistry",
    "BalancedSelectionStrategy",
    "GreedyReuseStrategy",
    "IntelligentAgentSelector",
    "PerformanceScorer",
    "SpawnPlanner",
    "WorkloadMonitor",
    # Agents
    "AcquiredAgent",
    "AgentProfile",
    "AgentSource",
    "AgentStatus",
    "CapabilityAnalysis",
    "PerformanceHistory",
    "RegisteredAgent",
    "RegistryStatistics",
    # Tasks
    "AgentMetrics",
    "ExecutionOptions",
    "SelectionOptions",
    "TaskComplexity",
    "TaskContext",
    "TaskDefinition",
    "TaskResult",
    "determine_complexity",
    # Selection and scoring
    "AgentCandidate",
    "AgentSelection",
    "PerformanceScore",
    "ScoredCandidate",
    "SelectionCriteria",
    "SelectionResult",
    "TaskHistorySnapshot",
    # Workload
    "LoadDistribution",
    "WorkloadMetrics",
    "WorkloadStatistics",
    # Optimization
    "OptimizationRecommendation",
    "OptimizationResult",
    "PoolOptimizationResult",
    "PoolStatistics",
    "RecommendationPriority",
    "RecommendationType",
    "SystemStatistics",
    # Collaborators
    "ConsensusGateway",
    "ConsensusOutcome",
    "ConsensusProposal",
    "ExecutionOutcome",
    "ProposalState",
    "ProposalStatus",
    "Spawner",
    "TaskExecutor",
    "TaskReassigner",
    "await_consensus",
    "require_consensus",
]
