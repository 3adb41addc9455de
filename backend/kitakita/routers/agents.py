from fastapi import APIRouter, Depends, HTTPException
from typing import Any, Dict

from ..schemas.agents import (
    AgentDecision,
    DashboardAnalysis,
    DecideRequest,
    FeedbackRequest,
    ReasonRequest,
    ReasoningResult,
)
from ..services.agents import (
    AgentSessionManager,
    BaseAgent,
    get_agent_session_manager,
    get_rate_limit_status,
    run_dashboard_analysis,
)

router = APIRouter(prefix="/agents", tags=["Agents"])


def get_sessions() -> AgentSessionManager:
    return get_agent_session_manager()


async def _load_agent(sessions: AgentSessionManager, user_id: str, agent_type: str) -> BaseAgent:
    if sessions.registry.get_agent(agent_type) is None:
        raise HTTPException(status_code=404, detail=f"Unknown agent type: {agent_type}")
    return await sessions.get_or_create(user_id, agent_type)


@router.get("/")
async def list_agents(sessions: AgentSessionManager = Depends(get_sessions)):
    """List the registered agent types."""
    return {"agents": sessions.registry.list_agents()}


@router.get("/rate-limit")
async def get_rate_limit():
    """
    Get current rate limit status for Gemini API calls.

    Returns per-minute remaining requests of the shared limiter.
    """
    return get_rate_limit_status()


@router.post("/{agent_type}/decide", response_model=AgentDecision)
async def decide(
    agent_type: str,
    request: DecideRequest,
    sessions: AgentSessionManager = Depends(get_sessions),
):
    """
    Run the agent's decision pipeline.

    Never fails because of the agent itself: if any stage breaks, the
    response is the degraded `seek_human_assistance` decision with
    `fallback: true`.
    """
    agent = await _load_agent(sessions, request.user_id, agent_type)
    return await agent.decide(request.context, request.options)


@router.post("/{agent_type}/reason", response_model=ReasoningResult)
async def reason(
    agent_type: str,
    request: ReasonRequest,
    sessions: AgentSessionManager = Depends(get_sessions),
):
    """Run multi-step reasoning on a problem description."""
    agent = await _load_agent(sessions, request.user_id, agent_type)
    return await agent.reason(request.problem)


@router.post("/{agent_type}/feedback")
async def feedback(
    agent_type: str,
    request: FeedbackRequest,
    sessions: AgentSessionManager = Depends(get_sessions),
) -> Dict[str, Any]:
    """Record feedback on a past decision and persist the agent's memory."""
    agent = await _load_agent(sessions, request.user_id, agent_type)
    result = await agent.learn_from_feedback(request.decision_id, request.feedback, request.outcome)
    result["persisted"] = await agent.persist_long_term_memory()
    return result


@router.get("/{agent_type}/dashboard", response_model=DashboardAnalysis)
async def dashboard(
    agent_type: str,
    user_id: str,
    sessions: AgentSessionManager = Depends(get_sessions),
):
    """
    Run the six dashboard analyses concurrently.

    Failed analyses come back as fallback stubs and are listed in `failed`.
    """
    agent = await _load_agent(sessions, user_id, agent_type)
    return await run_dashboard_analysis(agent)


@router.get("/{agent_type}/metrics")
async def metrics(
    agent_type: str,
    user_id: str,
    sessions: AgentSessionManager = Depends(get_sessions),
):
    """Performance metrics, memory usage and error counters of the agent."""
    agent = await _load_agent(sessions, user_id, agent_type)
    return agent.get_performance_metrics()
