"""Concurrent fan-out of independent agent analyses.

Branches run together with ``asyncio.gather(..., return_exceptions=True)``.
A branch that raises is replaced with a fallback stub. Every branch is
delivered; the ones that raised or came back as fallbacks are also reported
as failed.
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ...schemas.agents.decision import DashboardAnalysis
from .base import BaseAgent
from .fallback import fallback_response, is_fallback

logger = logging.getLogger(__name__)

ResultCallback = Callable[[str, Dict[str, Any]], Any]

DASHBOARD_ANALYSES: Dict[str, str] = {
    "financial_analysis": (
        "Analyze this user's overall financial position: income stability, spending "
        "discipline and savings progress. "
        'Return JSON: {"summary": "...", "strengths": [...], "concerns": [...]}'
    ),
    "recommendations": (
        "Give 3 prioritized, actionable recommendations for this user. "
        'Return JSON: {"recommendations": [{"title": "...", "description": "...", "priority": "high|medium|low"}]}'
    ),
    "goals": (
        "Suggest realistic short- and long-term financial goals for this user. "
        'Return JSON: {"goals": [{"name": "...", "target_amount": number, "timeline": "..."}]}'
    ),
    "health_score": (
        "Rate this user's financial health from 0 to 100 and explain the score. "
        'Return JSON: {"score": number, "grade": "...", "factors": [...]}'
    ),
    "market_insights": (
        "Share current, general Philippine market insights relevant to this user, such as "
        "savings rates, MP2 dividends and inflation. "
        'Return JSON: {"insights": [...]}'
    ),
    "risk_assessment": (
        "Assess this user's financial risks: liquidity, concentration and debt. "
        'Return JSON: {"risk_level": "low|medium|high", "risks": [...], "mitigations": [...]}'
    ),
}


async def fan_out(
    branches: Dict[str, Callable[[], Awaitable[Dict[str, Any]]]],
    on_result: Optional[ResultCallback] = None,
) -> Tuple[Dict[str, Dict[str, Any]], List[str]]:
    """Run independent branches concurrently.

    Args:
        branches: Name to zero-argument coroutine factory
        on_result: Optional callback invoked as ``on_result(name, result)``
            for every branch, failed ones included

    Returns:
        (results by name, names of branches that raised or returned a
        fallback stub)
    """
    names = list(branches)
    outcomes = await asyncio.gather(*(branches[name]() for name in names), return_exceptions=True)

    results: Dict[str, Dict[str, Any]] = {}
    failed: List[str] = []
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning(f"[Orchestrator] Branch {name} failed: {outcome}")
            outcome = {**fallback_response({"analysis": name}), "error": str(outcome)}
        if is_fallback(outcome):
            failed.append(name)
        results[name] = outcome

        if on_result is not None:
            try:
                delivered = on_result(name, outcome)
                if asyncio.iscoroutine(delivered):
                    await delivered
            except Exception:
                logger.exception(f"[Orchestrator] Result callback failed for {name}")

    return results, failed


def _dashboard_context(agent: BaseAgent) -> Dict[str, Any]:
    overview = agent.get_financial_overview()
    return {
        "total_balance": overview.total_balance,
        "monthly_income": overview.monthly_income,
        "monthly_expenses": overview.monthly_expenses,
        "savings_rate": overview.savings_rate,
        "liquidity_ratio": overview.liquidity_ratio,
        "top_categories": dict(list(overview.category_spending.items())[:5]),
        "account_count": len(agent.snapshot.accounts),
    }


async def run_dashboard_analysis(
    agent: BaseAgent,
    on_result: Optional[ResultCallback] = None,
) -> DashboardAnalysis:
    """Issue the six dashboard prompts for ``agent`` concurrently."""
    start_time = time.time()
    context = _dashboard_context(agent)
    summary = json.dumps(context, indent=2, default=str)

    def branch(prompt: str) -> Callable[[], Awaitable[Dict[str, Any]]]:
        return lambda: agent.call_ai(f"{prompt}\n\nFinancial Snapshot:\n{summary}", context)

    results, failed = await fan_out(
        {name: branch(prompt) for name, prompt in DASHBOARD_ANALYSES.items()},
        on_result=on_result,
    )
    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        f"[Orchestrator] Dashboard for {agent.agent_id}: {len(results) - len(failed)}/{len(results)} "
        f"branches ok in {duration_ms:.0f}ms"
    )
    agent.log_agent_action("dashboard_analysis", {"failed": failed})
    return DashboardAnalysis(agent_id=agent.agent_id, results=results, failed=failed, duration_ms=duration_ms)
