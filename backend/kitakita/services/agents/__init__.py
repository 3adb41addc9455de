"""Agent orchestration and fallback-resilience layer.

Every specialized agent runs the same decision pipeline, defined by
`BaseAgent`:

    analyze_situation -> generate_action_options -> evaluate_options
        -> select_optimal_action

Gateway calls go through a shared sliding-window limiter with exponential
backoff. Unusable AI output is turned into fallback results with the same
shape instead of being raised.

Main entry points:
    get_agent_session_manager().get_or_create(user_id, agent_type) -> BaseAgent
    run_dashboard_analysis(agent) -> DashboardAnalysis
"""

from .base import AgentRegistry, BaseAgent, get_registry
from .llm import GeminiGateway, get_gateway
from .orchestrator import fan_out, run_dashboard_analysis
from .rate_limit import get_rate_limit_status, get_shared_rate_limiter
from .sessions import AgentSessionManager, get_agent_session_manager
from .specialized import (
    DebtDemolisherAgent,
    GastosGuardianAgent,
    IponCoachAgent,
    PeraPlannerAgent,
    WealthBuilderAgent,
)

DEFAULT_AGENTS = (
    IponCoachAgent,
    GastosGuardianAgent,
    WealthBuilderAgent,
    DebtDemolisherAgent,
    PeraPlannerAgent,
)


def register_default_agents(registry: AgentRegistry = None) -> AgentRegistry:
    """Register the built-in agents with ``registry`` (the global one by default)."""
    registry = registry or get_registry()
    for agent_cls in DEFAULT_AGENTS:
        registry.register(agent_cls)
    return registry


register_default_agents()

__all__ = [
    "AgentRegistry",
    "AgentSessionManager",
    "BaseAgent",
    "DebtDemolisherAgent",
    "GastosGuardianAgent",
    "GeminiGateway",
    "IponCoachAgent",
    "PeraPlannerAgent",
    "WealthBuilderAgent",
    "fan_out",
    "get_agent_session_manager",
    "get_gateway",
    "get_rate_limit_status",
    "get_registry",
    "get_shared_rate_limiter",
    "register_default_agents",
    "run_dashboard_analysis",
]
