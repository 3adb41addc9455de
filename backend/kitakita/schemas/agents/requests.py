"""Request bodies for the agent HTTP endpoints."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class DecideRequest(BaseModel):
    user_id: str
    context: Dict[str, Any] = Field(default_factory=dict)
    options: List[Dict[str, Any]] = Field(default_factory=list)


class ReasonRequest(BaseModel):
    user_id: str
    problem: Dict[str, Any]


class FeedbackRequest(BaseModel):
    """User feedback on a decision the agent made earlier."""
    user_id: str
    decision_id: str
    feedback: Optional[str] = None
    outcome: Optional[str] = None  # success, failure
