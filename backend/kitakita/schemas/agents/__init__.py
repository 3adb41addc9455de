"""Agent system schemas."""

from .decision import (
    DEGRADED_DECISION,
    AgentDecision,
    DashboardAnalysis,
    DecisionRecord,
    ReasoningResult,
    ReasoningStep,
)
from .memory import EpisodicEntry, MemoryEntry
from .requests import DecideRequest, FeedbackRequest, ReasonRequest
from .state import AgentState, AutonomyLevel, ErrorCounters, PerformanceMetrics
from .trace import ExecutionTrace, TraceEvent, TraceEventType

__all__ = [
    "DEGRADED_DECISION",
    "AgentDecision",
    "DashboardAnalysis",
    "DecisionRecord",
    "ReasoningResult",
    "ReasoningStep",
    "EpisodicEntry",
    "MemoryEntry",
    "DecideRequest",
    "FeedbackRequest",
    "ReasonRequest",
    "AgentState",
    "AutonomyLevel",
    "ErrorCounters",
    "PerformanceMetrics",
    "ExecutionTrace",
    "TraceEvent",
    "TraceEventType",
]
