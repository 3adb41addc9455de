"""Decision and reasoning schemas for the agent pipeline."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
import uuid


DEGRADED_DECISION = "seek_human_assistance"


def _new_decision_id() -> str:
    return f"decision_{uuid.uuid4().hex[:12]}"


class DecisionRecord(BaseModel):
    """Immutable log entry for one completed pipeline run."""
    decision_id: str
    context: Dict[str, Any] = Field(default_factory=dict)
    evaluated_options: List[Dict[str, Any]] = Field(default_factory=list)
    chosen_option: Dict[str, Any] = Field(default_factory=dict)
    confidence: float = 0.5
    reasoning_chain: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(frozen=True)


class AgentDecision(BaseModel):
    """What `BaseAgent.decide` hands back to callers.

    Degraded results use the same shape with `decision` set to
    ``"seek_human_assistance"`` and `fallback` set to True.
    """
    decision: Any
    reasoning: Dict[str, Any] = Field(default_factory=dict)
    confidence: float = 0.5
    follow_up_plan: Dict[str, Any] = Field(default_factory=dict)
    decision_id: str = Field(default_factory=_new_decision_id)
    timestamp: datetime = Field(default_factory=datetime.now)
    agent_id: Optional[str] = None
    autonomy_level: Optional[str] = None
    requires_confirmation: bool = True
    fallback: bool = False
    error: Optional[str] = None

    @property
    def is_degraded(self) -> bool:
        return self.fallback or self.decision == DEGRADED_DECISION


class ReasoningStep(BaseModel):
    step: str
    result: Any = None
    confidence: float = 0.5
    fallback: bool = False


class ReasoningResult(BaseModel):
    """Outcome of a multi-step reasoning run."""
    problem: Dict[str, Any] = Field(default_factory=dict)
    reasoning_steps: List[ReasoningStep] = Field(default_factory=list)
    conclusion: Any = None
    confidence: float = 0.5
    reasoning_type: str = "advanced_multi_step"
    timestamp: datetime = Field(default_factory=datetime.now)
    fallback: bool = False


class DashboardAnalysis(BaseModel):
    """Joined results of the concurrent dashboard analyses."""
    agent_id: str
    results: Dict[str, Any] = Field(default_factory=dict)
    failed: List[str] = Field(default_factory=list)
    duration_ms: float = 0
