"""agent-reuse - capability-based worker agent pool.

Matches tasks to pooled worker agents by capability, ranks candidates by
performance and load, reuses idle agents before spawning new ones, and
tracks every agent's history and workload.

Example:
    from agentreuse.agents import (
        AgentPoolManager,
        AgentRegistry,
        IntelligentAgentSelector,
        PerformanceScorer,
        WorkloadMonitor,
    )

    registry = AgentRegistry()
    monitor = WorkloadMonitor()
    pool = AgentPoolManager(registry, spawner, monitor=monitor)
    selector = IntelligentAgentSelector(
        registry, pool, monitor, PerformanceScorer(), executor
    )
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
