"""Execution trace schemas for debugging and observability."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
import uuid


class TraceEventType(str, Enum):
    """Types of events recorded while an agent runs a pipeline."""
    STAGE_STARTED = "stage_started"
    STAGE_COMPLETED = "stage_completed"
    STAGE_FAILED = "stage_failed"
    LLM_CALL = "llm_call"
    FALLBACK_TRIGGERED = "fallback_triggered"
    MEMORY_UPDATED = "memory_updated"
    RECOVERY_TRIGGERED = "recovery_triggered"


class TraceEvent(BaseModel):
    """A single event in the execution trace."""
    timestamp: datetime = Field(default_factory=datetime.now)
    event_type: TraceEventType
    agent: Optional[str] = None
    stage: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    duration_ms: Optional[float] = None

    class Config:
        use_enum_values = True


class ExecutionTrace(BaseModel):
    """Complete trace of one decision or reasoning run.

    Captures all events, timing, and the outcome for observability.
    """
    trace_id: str = Field(default_factory=lambda: str(uuid.uuid4())[:12])
    agent_id: str
    purpose: str
    events: List[TraceEvent] = Field(default_factory=list)
    total_duration_ms: float = 0
    llm_calls: int = 0
    stages_completed: int = 0
    stages_failed: int = 0
    fallbacks: int = 0
    success: bool = False
    started_at: datetime = Field(default_factory=datetime.now)

    def add_event(
        self,
        event_type: TraceEventType,
        agent: Optional[str] = None,
        stage: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
    ) -> None:
        """Add an event to the trace."""
        self.events.append(TraceEvent(
            event_type=event_type,
            agent=agent,
            stage=stage,
            data=data or {},
            duration_ms=duration_ms,
        ))

        if event_type == TraceEventType.LLM_CALL:
            self.llm_calls += 1
        elif event_type == TraceEventType.STAGE_COMPLETED:
            self.stages_completed += 1
        elif event_type == TraceEventType.STAGE_FAILED:
            self.stages_failed += 1
        elif event_type == TraceEventType.FALLBACK_TRIGGERED:
            self.fallbacks += 1

    def finalize(self, success: bool = False) -> None:
        """Finalize the trace with the outcome."""
        self.success = success
        self.total_duration_ms = (datetime.now() - self.started_at).total_seconds() * 1000
