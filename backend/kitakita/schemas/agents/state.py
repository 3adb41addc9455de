"""Lifecycle, counter and metric schemas for agent instances."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class AgentState(str, Enum):
    """Lifecycle state of an agent instance."""
    INITIALIZING = "initializing"
    READY = "ready"
    RECOVERY = "recovery"
    OFFLINE = "offline"


class AutonomyLevel(str, Enum):
    """How much an agent may act without a human confirming."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ErrorCounters(BaseModel):
    """Error and recovery bookkeeping for one agent instance."""
    error_count: int = 0
    consecutive_errors: int = 0
    api_errors: int = 0
    rate_limit_errors: int = 0
    last_error_time: Optional[datetime] = None


class PerformanceMetrics(BaseModel):
    decisions_count: int = 0
    successful_recommendations: int = 0
    learning_iterations: int = 0
    autonomous_actions: int = 0
    account_analysis_count: int = 0
    reasoning_count: int = 0
    degraded_decisions: int = 0
