"""Agent memory: short-term, long-term, episodic and semantic stores.

The four stores are independent dictionaries/lists. Keys are not checked
across stores, so callers namespace their own keys.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ...config import EPISODIC_MEMORY_CAP, EPISODIC_TRIM_TO
from ...schemas.agents.memory import EpisodicEntry, MemoryEntry

logger = logging.getLogger(__name__)


def calculate_importance_score(experience: Dict[str, Any]) -> float:
    """Score an experience for prioritization (0-1)."""
    score = 0.5
    kind = experience.get("type")
    if kind == "decision_making":
        score += 0.3
    if kind == "error":
        score += 0.2
    if experience.get("user_feedback"):
        score += 0.2
    if experience.get("outcome") == "success":
        score += 0.1
    return min(score, 1.0)


def assess_emotional_tone(experience: Dict[str, Any]) -> str:
    kind = experience.get("type")
    if kind == "error":
        return "negative"
    if kind == "success":
        return "positive"
    return "neutral"


class AgentMemory:
    """Memory stores for one agent instance."""

    def __init__(
        self,
        agent_id: str,
        episodic_cap: int = EPISODIC_MEMORY_CAP,
        episodic_trim_to: int = EPISODIC_TRIM_TO,
    ):
        self.agent_id = agent_id
        self.episodic_cap = episodic_cap
        self.episodic_trim_to = episodic_trim_to
        self.short_term: Dict[str, MemoryEntry] = {}
        self.long_term: Dict[str, Any] = {}
        self.episodic: List[EpisodicEntry] = []
        self.semantic: Dict[str, Any] = {}

    # Short-term

    def remember(self, key: str, value: Any) -> None:
        self.short_term[key] = MemoryEntry(value=value)

    def recall(self, key: str, default: Any = None) -> Any:
        """Read a short-term value, counting the access."""
        entry = self.short_term.get(key)
        if entry is None:
            return default
        entry.access_count += 1
        return entry.value

    def forget(self, key: str) -> None:
        self.short_term.pop(key, None)

    def clear_short_term(self) -> None:
        self.short_term.clear()

    # Long-term

    def load_long_term(self, data: Optional[Dict[str, Any]]) -> None:
        """Replace long-term memory with the persisted map."""
        self.long_term = dict(data or {})

    def get_long_term(self, key: str, default: Any = None) -> Any:
        return self.long_term.get(key, default)

    def set_long_term(self, key: str, value: Any) -> None:
        self.long_term[key] = value

    # Episodic

    def store_episode(
        self,
        experience: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> EpisodicEntry:
        """Append an experience, trimming to the most recent entries on overflow.

        Eviction is by recency only; the importance score is recorded but
        not consulted.
        """
        entry = EpisodicEntry(
            agent_id=self.agent_id,
            experience=experience,
            context=context or {},
            emotional_tone=assess_emotional_tone(experience),
            importance_score=calculate_importance_score(experience),
        )
        self.episodic.append(entry)

        if len(self.episodic) > self.episodic_cap:
            self.episodic = self.episodic[-self.episodic_trim_to:]
            logger.debug(f"[Memory] {self.agent_id} episodic memory trimmed to {len(self.episodic)}")
        return entry

    def search_episodes(
        self,
        query: Optional[str] = None,
        predicate: Optional[Callable[[EpisodicEntry], bool]] = None,
        limit: Optional[int] = None,
    ) -> List[EpisodicEntry]:
        """Find episodes whose serialized experience contains `query`.

        Results are newest first.
        """
        matches = []
        for entry in reversed(self.episodic):
            if predicate and not predicate(entry):
                continue
            if query is not None:
                haystack = json.dumps(entry.experience, default=str)
                if str(query) not in haystack:
                    continue
            matches.append(entry)
            if limit and len(matches) >= limit:
                break
        return matches

    # Semantic

    def load_semantic(self, facts: Dict[str, Any]) -> None:
        self.semantic.update(facts)

    def get_fact(self, key: str, default: Any = None) -> Any:
        return self.semantic.get(key, default)

    def search_semantic(self, query: str) -> Dict[str, Any]:
        """Facts whose key contains `query` (case-insensitive)."""
        needle = query.lower()
        return {k: v for k, v in self.semantic.items() if needle in k.lower()}

    def usage(self) -> Dict[str, int]:
        return {
            "short_term": len(self.short_term),
            "long_term": len(self.long_term),
            "episodic": len(self.episodic),
            "semantic": len(self.semantic),
        }

    def clear(self) -> None:
        """Drop everything except semantic knowledge."""
        self.short_term.clear()
        self.long_term.clear()
        self.episodic.clear()
        logger.info(f"[Memory] {self.agent_id} memory cleared at {datetime.now().isoformat()}")
