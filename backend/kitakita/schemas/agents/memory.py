"""Memory entry schemas."""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field


class MemoryEntry(BaseModel):
    """A short-term memory slot."""
    value: Any = None
    timestamp: datetime = Field(default_factory=datetime.now)
    access_count: int = 0


class EpisodicEntry(BaseModel):
    """One experience in the append-only episodic log."""
    timestamp: datetime = Field(default_factory=datetime.now)
    agent_id: str
    experience: Dict[str, Any] = Field(default_factory=dict)
    context: Dict[str, Any] = Field(default_factory=dict)
    emotional_tone: str = "neutral"
    importance_score: float = Field(default=0.5, ge=0.0, le=1.0)
