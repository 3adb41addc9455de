"""Per-user agent instance cache with TTL and cleanup."""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from .base import AgentRegistry, BaseAgent, get_registry
from .llm import GeminiGateway, get_gateway
from .store import FinancialDataStore, SqlFinancialDataStore

logger = logging.getLogger(__name__)

SessionKey = Tuple[str, str]


class AgentSession:
    """An initialized agent plus its last access time."""

    def __init__(self, agent: BaseAgent, now: float):
        self.agent = agent
        self.created_at = now
        self.last_accessed = now


class AgentSessionManager:
    """Keeps initialized agents per (user_id, agent_type).

    Creating an agent loads memory and financial data, so instances are
    reused until they sit idle for TTL_SECONDS.
    """

    TTL_SECONDS = 30 * 60  # 30 minutes
    MAX_SESSIONS = 1000

    def __init__(
        self,
        registry: Optional[AgentRegistry] = None,
        store_factory: Callable[[], FinancialDataStore] = SqlFinancialDataStore,
        gateway: Optional[GeminiGateway] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry or get_registry()
        self.store_factory = store_factory
        self.gateway = gateway
        self._clock = clock
        self._sessions: Dict[SessionKey, AgentSession] = {}
        self._locks: Dict[SessionKey, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def get_or_create(self, user_id: str, agent_type: str) -> BaseAgent:
        """Get the cached agent or create and initialize a new one.

        Only concurrent requests for the same (user_id, agent_type) wait on
        each other; cache hits and other keys never wait behind an
        initialization.

        Args:
            user_id: Owner of the agent
            agent_type: Registered agent type

        Returns:
            An initialized agent

        Raises:
            KeyError: agent_type is not registered
        """
        key = (user_id, agent_type)
        self._maybe_cleanup()
        agent = self.get(user_id, agent_type)
        if agent is not None:
            return agent

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            agent = self.get(user_id, agent_type)
            if agent is not None:
                return agent

            agent = await self.registry.create_agent(
                agent_type,
                user_id,
                store=self.store_factory(),
                gateway=self.gateway or get_gateway(),
            )
            self._maybe_cleanup()
            self._sessions[key] = AgentSession(agent, self._clock())
            logger.info(f"[Sessions] Created {agent_type} agent for {user_id}")
        return agent

    def get(self, user_id: str, agent_type: str) -> Optional[BaseAgent]:
        session = self._sessions.get((user_id, agent_type))
        if session:
            session.last_accessed = self._clock()
            return session.agent
        return None

    def remove(self, user_id: str, agent_type: str) -> bool:
        return self._sessions.pop((user_id, agent_type), None) is not None

    def _maybe_cleanup(self) -> None:
        """Remove expired sessions."""
        now = self._clock()
        expired = [
            key for key, session in self._sessions.items()
            if now - session.last_accessed > self.TTL_SECONDS
        ]
        for key in expired:
            del self._sessions[key]

        # If still over limit, remove oldest
        if len(self._sessions) >= self.MAX_SESSIONS:
            oldest = sorted(self._sessions, key=lambda k: self._sessions[k].last_accessed)
            for key in oldest[: len(self._sessions) - self.MAX_SESSIONS + 1]:
                del self._sessions[key]

        for key in [k for k, lock in self._locks.items() if k not in self._sessions and not lock.locked()]:
            del self._locks[key]


# Global session manager instance
_session_manager: Optional[AgentSessionManager] = None


def get_agent_session_manager() -> AgentSessionManager:
    """Get the global agent session manager."""
    global _session_manager
    if _session_manager is None:
        _session_manager = AgentSessionManager()
    return _session_manager
