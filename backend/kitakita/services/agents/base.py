"""Base agent, decision pipeline and registry.

Every specialized agent extends `BaseAgent` and supplies the four mandatory
decision stages (see `DecisionStages`). The base class owns everything around
them: initialization, memory, gateway calls with fallbacks, error counting,
recovery and offline mode.
"""

import asyncio
import json
import logging
import time
import uuid
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol, Type, runtime_checkable

from ...config import AUTONOMY_LEVELS, settings
from ...schemas.agents.decision import (
    DEGRADED_DECISION,
    AgentDecision,
    DecisionRecord,
    ReasoningResult,
    ReasoningStep,
)
from ...schemas.agents.state import AgentState, AutonomyLevel, ErrorCounters, PerformanceMetrics
from ...schemas.agents.trace import ExecutionTrace, TraceEventType
from ...schemas.finance import FinancialOverview, FinancialSnapshot
from . import finance
from .errors import GatewayNotConfiguredError, RetryExhaustedError, is_rate_limit_error
from .fallback import fallback_response, is_fallback, parse_ai_list, parse_ai_response, structured_or_fallback
from .llm import GeminiGateway
from .memory import AgentMemory
from .store import FinancialDataStore
from .tracing import format_trace_summary, trace_llm_call, trace_stage

logger = logging.getLogger(__name__)

DEFAULT_DECISION_THRESHOLD = 0.7
DEFAULT_LEARNING_RATE = 0.3

DEFAULT_DOMAIN_KNOWLEDGE = {
    "financial_basics": "Core financial principles and concepts",
    "risk_management": "Risk assessment and mitigation strategies",
    "goal_setting": "SMART goal setting principles",
}


@runtime_checkable
class DecisionStages(Protocol):
    """The four stages every agent must provide."""

    async def analyze_situation(self, context: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def generate_action_options(
        self, context: Dict[str, Any], analysis: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        ...

    async def evaluate_options(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Return the options, each carrying a comparable ``score``."""
        ...

    async def select_optimal_action(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> Dict[str, Any]:
        ...


class BaseAgent:
    """Base class for agents with common functionality.

    Build instances with ``await AgentClass.create(user_id, ...)``; it only
    returns once memory and financial data are loaded.
    """

    agent_type: str = "base_agent"
    default_autonomy: AutonomyLevel = AutonomyLevel.MEDIUM
    version = "2.0.0"

    def __init__(
        self,
        user_id: Optional[str] = None,
        store: Optional[FinancialDataStore] = None,
        gateway: Optional[GeminiGateway] = None,
        autonomy_level: Optional[AutonomyLevel] = None,
        decision_threshold: Optional[float] = None,
        learning_rate: float = DEFAULT_LEARNING_RATE,
        history_limit: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.user_id = user_id
        self.store = store
        self.gateway = gateway
        self._clock = clock

        self.agent_id = f"{self.agent_type}_{int(clock() * 1000)}"
        self.autonomy_level = AutonomyLevel(autonomy_level or self.default_autonomy)
        level_config = AUTONOMY_LEVELS.get(self.autonomy_level.value, {})
        if decision_threshold is None:
            decision_threshold = level_config.get("decision_threshold", DEFAULT_DECISION_THRESHOLD)
        self.decision_threshold = decision_threshold
        self.confirmation_required = level_config.get("user_confirmation_required", True)
        self.learning_rate = learning_rate

        self.state = AgentState.INITIALIZING
        self.memory = AgentMemory(self.agent_id)
        self.counters = ErrorCounters()
        self.metrics = PerformanceMetrics()

        limit = history_limit or settings.AGENT_HISTORY_LIMIT
        self.decision_history: Deque[DecisionRecord] = deque(maxlen=limit)
        self.reasoning_history: Deque[ReasoningResult] = deque(maxlen=limit)

        self.snapshot = FinancialSnapshot()
        self.account_insights: Dict[str, Dict[str, Any]] = {}
        self.goals: List[Dict[str, Any]] = []
        self.last_trace: Optional[ExecutionTrace] = None
        self._started_at = clock()
        self._recovering = False

    @classmethod
    async def create(cls, user_id: Optional[str] = None, **kwargs: Any) -> "BaseAgent":
        """Construct an agent and wait for its initialization to settle."""
        agent = cls(user_id=user_id, **kwargs)
        await agent.initialize()
        return agent

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load memory and financial data, then mark the agent ready.

        Failures are recorded and the agent still becomes ready, running on
        whatever data did load.
        """
        self.state = AgentState.INITIALIZING
        try:
            self.memory.remember("session_start", datetime.fromtimestamp(self._clock()).isoformat())
            await self.load_long_term_memory()
            self.memory.load_semantic(await self.load_domain_knowledge())
            await self.load_user_financial_data()
            await self.on_initialized()
        except Exception as e:
            await self.handle_error("initialization_failed", e)
        self.state = AgentState.READY
        self.log_agent_action("initialized", {"accounts": len(self.snapshot.accounts)})

    async def on_initialized(self) -> None:
        """Hook for subclasses, run after data is loaded."""

    async def load_domain_knowledge(self) -> Dict[str, Any]:
        return dict(DEFAULT_DOMAIN_KNOWLEDGE)

    async def load_long_term_memory(self) -> None:
        if not self.store or not self.user_id:
            return
        try:
            profile = await self.store.get_user_data(self.user_id)
        except Exception as e:
            logger.warning(f"[{self.agent_type}] Failed to load long-term memory: {e}")
            return
        stored = ((profile or {}).get("agentMemory") or {}).get(self.agent_type) or {}
        self.memory.load_long_term(stored)
        if profile:
            self.memory.set_long_term("user_profile", profile)

    async def load_user_financial_data(self) -> FinancialSnapshot:
        """Fetch profile, transactions and accounts concurrently.

        Any store failure is treated as "no data" for that part.
        """
        if not self.store or not self.user_id:
            self.snapshot = FinancialSnapshot()
            self.account_insights = {}
            return self.snapshot

        results = await asyncio.gather(
            self.store.get_user_data(self.user_id),
            self.store.get_user_transactions(self.user_id),
            self.store.get_user_bank_accounts(self.user_id),
            return_exceptions=True,
        )

        names = ("profile", "transactions", "accounts")
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning(f"[{self.agent_type}] Could not load {name} for {self.user_id}: {result}")

        profile, transactions, accounts = (
            None if isinstance(r, Exception) else r for r in results
        )
        self.snapshot = FinancialSnapshot(
            profile=profile,
            accounts=list(accounts or []),
            transactions=list(transactions or []),
        )

        self.memory.remember("user_accounts", [a.id for a in self.snapshot.accounts])
        self.account_insights = finance.generate_account_insights(
            self.snapshot.accounts, self.snapshot.transactions
        )
        self.metrics.account_analysis_count += len(self.account_insights)
        logger.info(
            f"[{self.agent_type}] Loaded {len(self.snapshot.accounts)} accounts, "
            f"{len(self.snapshot.transactions)} transactions for {self.user_id}"
        )
        return self.snapshot

    def get_financial_overview(self) -> FinancialOverview:
        return finance.get_financial_overview(self.snapshot.accounts, self.snapshot.transactions)

    # ------------------------------------------------------------------
    # Decision pipeline
    # ------------------------------------------------------------------

    async def analyze_situation(self, context: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError(f"{type(self).__name__} must implement analyze_situation")

    async def generate_action_options(
        self, context: Dict[str, Any], analysis: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError(f"{type(self).__name__} must implement generate_action_options")

    async def evaluate_options(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError(f"{type(self).__name__} must implement evaluate_options")

    async def select_optimal_action(
        self, options: List[Dict[str, Any]], context: Dict[str, Any]
    ) -> Dict[str, Any]:
        raise NotImplementedError(f"{type(self).__name__} must implement select_optimal_action")

    async def build_reasoning_chain(
        self,
        context: Dict[str, Any],
        options: List[Dict[str, Any]],
        decision: Dict[str, Any],
    ) -> Dict[str, Any]:
        return {"steps": [], "conclusion": decision}

    async def plan_follow_up_actions(
        self, decision: Dict[str, Any], context: Dict[str, Any]
    ) -> Dict[str, Any]:
        return {"actions": [], "timeline": "immediate"}

    async def decide(
        self,
        context: Optional[Dict[str, Any]] = None,
        options: Optional[List[Dict[str, Any]]] = None,
    ) -> AgentDecision:
        """Run the decision pipeline. Never raises.

        Any failure in any stage yields the degraded
        ``seek_human_assistance`` decision instead.
        """
        context = dict(context or {})
        trace = ExecutionTrace(agent_id=self.agent_id, purpose="decision")
        self.last_trace = trace

        try:
            with trace_stage(trace, "analyze_situation", self.agent_type):
                analysis = await self.analyze_situation(context)
            with trace_stage(trace, "generate_action_options", self.agent_type):
                generated = await self.generate_action_options(context, analysis)
            with trace_stage(trace, "evaluate_options", self.agent_type) as stage:
                evaluated = await self.evaluate_options(list(options or []) + list(generated or []), context)
                stage["options"] = len(evaluated)
            with trace_stage(trace, "select_optimal_action", self.agent_type):
                decision = await self.select_optimal_action(evaluated, context)
            reasoning = await self.build_reasoning_chain(context, evaluated, decision)
            follow_up = await self.plan_follow_up_actions(decision, context)

            confidence = self._decision_confidence(decision)
            record = DecisionRecord(
                decision_id=f"decision_{uuid.uuid4().hex[:12]}",
                context=context,
                evaluated_options=evaluated,
                chosen_option=decision if isinstance(decision, dict) else {"action": decision},
                confidence=confidence,
                reasoning_chain=reasoning,
            )
            self.decision_history.append(record)
            self.memory.store_episode(
                {
                    "type": "decision_making",
                    "decision_id": record.decision_id,
                    "decision": record.chosen_option,
                    "confidence": confidence,
                },
                context=self.get_current_context(),
            )
            trace.add_event(TraceEventType.MEMORY_UPDATED, agent=self.agent_type, data={"episodes": len(self.memory.episodic)})

            self.metrics.decisions_count += 1
            self.metrics.autonomous_actions += 1
            trace.finalize(success=True)
            logger.debug(format_trace_summary(trace))
            self.log_agent_action("decision_made", {"decision_id": record.decision_id, "confidence": confidence})

            return AgentDecision(
                decision=decision,
                reasoning=reasoning,
                confidence=confidence,
                follow_up_plan=follow_up,
                decision_id=record.decision_id,
                timestamp=record.timestamp,
                agent_id=self.agent_id,
                autonomy_level=self.autonomy_level.value,
                requires_confirmation=self.requires_confirmation(confidence),
            )

        except Exception as e:
            logger.exception(f"[{self.agent_type}] Decision pipeline failed: {e}")
            trace.add_event(TraceEventType.FALLBACK_TRIGGERED, agent=self.agent_type, data={"reason": str(e)})
            trace.finalize(success=False)
            self.metrics.degraded_decisions += 1
            await self.handle_error("autonomous_decision_failed", e, context)
            return AgentDecision(
                decision=DEGRADED_DECISION,
                confidence=0.5,
                agent_id=self.agent_id,
                autonomy_level=self.autonomy_level.value,
                requires_confirmation=True,
                fallback=True,
                error=str(e),
            )

    def requires_confirmation(self, confidence: float) -> bool:
        return self.confirmation_required or confidence < self.decision_threshold

    @staticmethod
    def _decision_confidence(decision: Any) -> float:
        if isinstance(decision, dict):
            for key in ("confidence", "score"):
                value = decision.get(key)
                if isinstance(value, (int, float)):
                    return float(value)
        return 0.5

    # ------------------------------------------------------------------
    # Advanced reasoning
    # ------------------------------------------------------------------

    async def reason(self, problem: Dict[str, Any]) -> ReasoningResult:
        """Five-step reasoning, each step with its own gateway call and fallback."""
        trace = ExecutionTrace(agent_id=self.agent_id, purpose="reasoning")
        self.last_trace = trace
        try:
            steps: List[ReasoningStep] = []

            sub_problems = await self.decompose_problem(problem, trace)
            steps.append(self._make_step("decomposition", sub_problems))

            evidence = await self.gather_evidence(problem, trace)
            steps.append(self._make_step("evidence_gathering", evidence))

            patterns = await self.recognize_patterns(problem, evidence, trace)
            steps.append(self._make_step("pattern_recognition", patterns))

            inferences = await self.perform_logical_inference(sub_problems, evidence, patterns, trace)
            steps.append(self._make_step("logical_inference", inferences))

            conclusion = await self.synthesize_conclusion(steps, problem, trace)
            steps.append(self._make_step("synthesis", conclusion))

            result = ReasoningResult(
                problem=problem,
                reasoning_steps=steps,
                conclusion=conclusion,
                confidence=self.assess_reasoning_confidence(steps),
            )
            self.reasoning_history.append(result)
            self.metrics.reasoning_count += 1
            trace.finalize(success=True)
            return result

        except Exception as e:
            logger.exception(f"[{self.agent_type}] Reasoning failed: {e}")
            trace.finalize(success=False)
            await self.handle_error("reasoning_failed", e, {"problem": problem})
            return ReasoningResult(
                problem=problem,
                conclusion="basic_reasoning_applied",
                confidence=0.5,
                reasoning_type="basic",
                fallback=True,
            )

    @staticmethod
    def _make_step(name: str, result: Any) -> ReasoningStep:
        confidence = 0.5
        if isinstance(result, dict) and isinstance(result.get("confidence"), (int, float)):
            confidence = float(result["confidence"])
        return ReasoningStep(step=name, result=result, confidence=confidence, fallback=is_fallback(result))

    def get_step_weight(self, step: str) -> float:
        return 1.0

    def assess_reasoning_confidence(self, steps: List[ReasoningStep]) -> float:
        """Weighted mean of step confidences; 0.5 with no steps."""
        total = 0.0
        weight_sum = 0.0
        for step in steps:
            weight = self.get_step_weight(step.step)
            total += step.confidence * weight
            weight_sum += weight
        return total / weight_sum if weight_sum > 0 else 0.5

    async def decompose_problem(self, problem: Dict[str, Any], trace: Optional[ExecutionTrace] = None) -> List[str]:
        prompt = (
            "Decompose this financial problem into smaller, manageable sub-problems:\n\n"
            f"Problem: {json.dumps(problem, default=str)}\n\n"
            "Break it down into 3-5 specific sub-problems that can be analyzed independently.\n"
            'Return as JSON array: ["sub-problem 1", "sub-problem 2", ...]'
        )
        raw = await self.call_ai_raw(prompt, trace=trace)
        sub_problems = parse_ai_list(raw)
        if sub_problems:
            return [str(s) for s in sub_problems]
        return [problem.get("description") or "Unknown problem"]

    async def gather_evidence(self, problem: Dict[str, Any], trace: Optional[ExecutionTrace] = None) -> Dict[str, Any]:
        overview = self.get_financial_overview()
        prompt = (
            "List the evidence relevant to this financial problem.\n\n"
            f"Problem: {json.dumps(problem, default=str)}\n"
            f"Financial overview: {overview.model_dump_json()}\n\n"
            'Return JSON: {"evidence": [...], "market_data": {...}, "confidence": 0.0-1.0}'
        )
        parsed = await self.call_ai(prompt, trace=trace)
        if is_fallback(parsed):
            return {}

        query = problem.get("description") or problem.get("type")
        return {
            **parsed,
            "historical": [e.experience for e in self.memory.search_episodes(query, limit=5)] if query else [],
            "recent_interactions": self.memory.recall("user_interactions", [])[-5:],
            "expert_knowledge": self.memory.search_semantic(str(problem.get("type", ""))),
        }

    async def recognize_patterns(
        self,
        problem: Dict[str, Any],
        evidence: Dict[str, Any],
        trace: Optional[ExecutionTrace] = None,
    ) -> List[Dict[str, Any]]:
        prompt = (
            "Identify recurring financial patterns relevant to this problem.\n\n"
            f"Problem: {json.dumps(problem, default=str)}\n"
            f"Evidence: {json.dumps(evidence, default=str)[:2000]}\n\n"
            'Return JSON array: [{"type": "...", "pattern": "...", "confidence": 0.0-1.0}]'
        )
        raw = await self.call_ai_raw(prompt, trace=trace)
        patterns = parse_ai_list(raw)
        return [p for p in patterns if isinstance(p, dict)] if patterns else []

    async def perform_logical_inference(
        self,
        sub_problems: List[str],
        evidence: Dict[str, Any],
        patterns: List[Dict[str, Any]],
        trace: Optional[ExecutionTrace] = None,
    ) -> Dict[str, Any]:
        prompt = (
            "Infer a solution for each sub-problem from the evidence and patterns.\n\n"
            f"Sub-problems: {json.dumps(sub_problems)}\n"
            f"Evidence: {json.dumps(evidence, default=str)[:2000]}\n"
            f"Patterns: {json.dumps(patterns, default=str)}\n\n"
            'Return JSON: {"sub_problem_inferences": [{"sub_problem": "...", "solution": "...", '
            '"confidence": 0.0-1.0}], "overall_inference": "...", "confidence": 0.0-1.0}'
        )
        parsed = await self.call_ai(prompt, trace=trace)
        return structured_or_fallback(
            parsed,
            ("sub_problem_inferences", "overall_inference"),
            {
                "sub_problem_inferences": [
                    {"sub_problem": sub, "solution": "inferred", "confidence": 0.6}
                    for sub in sub_problems
                ],
                "overall_inference": "synthesized_result",
                "confidence": 0.7,
            },
        )

    async def synthesize_conclusion(
        self,
        steps: List[ReasoningStep],
        problem: Dict[str, Any],
        trace: Optional[ExecutionTrace] = None,
    ) -> Dict[str, Any]:
        prompt = (
            "Synthesize a final conclusion from these reasoning steps.\n\n"
            f"Problem: {json.dumps(problem, default=str)}\n"
            f"Steps: {json.dumps([s.model_dump() for s in steps], default=str)[:3000]}\n\n"
            'Return JSON: {"conclusion": "...", "confidence": 0.0-1.0, "next_steps": [...]}'
        )
        parsed = await self.call_ai(prompt, trace=trace)
        return structured_or_fallback(
            parsed,
            ("conclusion", "confidence"),
            {
                "problem": problem,
                "reasoning_path": [s.step for s in steps],
                "evidence_quality": "good",
                "pattern_strength": "moderate",
                "logical_coherence": "coherent",
                "conclusion": "conclusion_formulated",
                "confidence": 0.7,
            },
        )

    # ------------------------------------------------------------------
    # Gateway calls
    # ------------------------------------------------------------------

    def build_enhanced_prompt(self, prompt: str, context: Optional[Dict[str, Any]] = None) -> str:
        return (
            f"You are an autonomous {self.agent_type} AI agent for Filipino personal finance.\n"
            f"- Agent ID: {self.agent_id}\n"
            f"- Autonomy Level: {self.autonomy_level.value}\n"
            f"- Version: {self.version}\n"
            f"- Current State: {self.state.value}\n"
            f"- Decision History: {len(self.decision_history)} previous decisions\n"
            f"- Learning Iterations: {self.metrics.learning_iterations}\n\n"
            f"Context: {json.dumps(context or {}, default=str)}\n\n"
            f"{prompt}\n\n"
            "Provide your response in JSON format with clear reasoning and confidence scores."
        )

    @property
    def is_offline(self) -> bool:
        return self.state == AgentState.OFFLINE

    async def call_ai_raw(
        self,
        prompt: str,
        context: Optional[Dict[str, Any]] = None,
        trace: Optional[ExecutionTrace] = None,
    ) -> Optional[str]:
        """Call the gateway and return raw text, or None if the call failed.

        While the agent is offline the gateway is not called at all.
        """
        self._maybe_reset_error_counters()
        if self.is_offline:
            logger.info(f"[{self.agent_type}] Offline, skipping AI call")
            return None
        if self.gateway is None:
            return None

        start_time = time.time()
        try:
            raw = await self.gateway.generate(self.build_enhanced_prompt(prompt, context))
        except GatewayNotConfiguredError:
            trace_llm_call(trace, self.agent_type, prompt, fallback=True)
            return None
        except Exception as e:
            logger.warning(f"[{self.agent_type}] AI call failed, using fallback: {e}")
            self.track_gateway_error(e)
            trace_llm_call(trace, self.agent_type, prompt, duration_ms=(time.time() - start_time) * 1000, fallback=True)
            return None

        self.counters.consecutive_errors = 0
        trace_llm_call(trace, self.agent_type, prompt, raw, duration_ms=(time.time() - start_time) * 1000)
        return raw

    async def call_ai(
        self,
        prompt: str,
        context: Optional[Dict[str, Any]] = None,
        trace: Optional[ExecutionTrace] = None,
    ) -> Dict[str, Any]:
        """Call the gateway and parse the JSON out of the reply.

        Returns `fallback_response` when the call itself failed.
        """
        raw = await self.call_ai_raw(prompt, context, trace)
        if raw is None:
            return fallback_response(context)
        return parse_ai_response(raw)

    # ------------------------------------------------------------------
    # Errors, recovery, offline mode
    # ------------------------------------------------------------------

    def _maybe_reset_error_counters(self) -> None:
        last = self.counters.last_error_time
        if last is None:
            return
        if self._clock() - last.timestamp() > settings.AGENT_ERROR_RESET_SECONDS:
            self.counters = ErrorCounters()
            if self.is_offline:
                logger.info(f"[{self.agent_type}] Error counters reset, leaving offline mode")
                self.state = AgentState.READY

    def track_gateway_error(self, error: BaseException) -> None:
        """Count a failed gateway call and go offline past the thresholds."""
        self._maybe_reset_error_counters()
        self.counters.last_error_time = datetime.fromtimestamp(self._clock())
        if is_rate_limit_error(error) or isinstance(error, RetryExhaustedError):
            self.counters.rate_limit_errors += 1
        else:
            self.counters.api_errors += 1
        self.counters.consecutive_errors += 1

        if self.should_switch_to_offline_mode() and not self.is_offline:
            logger.warning(f"[{self.agent_type}] Switching to offline mode due to error threshold exceeded")
            self.state = AgentState.OFFLINE

    def should_switch_to_offline_mode(self) -> bool:
        return (
            self.counters.consecutive_errors >= settings.AGENT_MAX_CONSECUTIVE_ERRORS
            or self.counters.api_errors >= settings.AGENT_MAX_API_ERRORS
        )

    async def handle_error(
        self,
        error_type: str,
        error: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record an error and self-heal once too many have accumulated."""
        self._maybe_reset_error_counters()
        self.counters.error_count += 1
        self.counters.last_error_time = datetime.fromtimestamp(self._clock())
        logger.error(f"[{self.agent_type}] {error_type}: {error}")

        self.memory.store_episode(
            {"type": "error", "error_type": error_type, "error": str(error)},
            context={"agent_id": self.agent_id, "details": context or {}},
        )

        if self.counters.error_count > settings.AGENT_ERROR_RECOVERY_THRESHOLD:
            await self.activate_recovery_mode()

    async def activate_recovery_mode(self) -> None:
        """Re-run the full initialization sequence."""
        if self._recovering:
            return
        self._recovering = True
        logger.warning(f"[{self.agent_type}] Activating recovery mode due to {self.counters.error_count} errors")
        self.state = AgentState.RECOVERY
        if self.last_trace is not None:
            self.last_trace.add_event(TraceEventType.RECOVERY_TRIGGERED, agent=self.agent_type)
        self.counters.error_count = 0
        try:
            await self.initialize()
        finally:
            self._recovering = False

    # ------------------------------------------------------------------
    # Memory, feedback and metrics
    # ------------------------------------------------------------------

    def get_current_context(self) -> Dict[str, Any]:
        session_start = self.memory.recall("session_start")
        return {
            "agent_state": self.state.value,
            "session_duration": self._clock() - self._started_at,
            "session_start": session_start,
            "recent_decisions": [r.decision_id for r in list(self.decision_history)[-5:]],
            "user_present": self.user_id is not None,
            "memory_load": len(self.memory.episodic),
            "timestamp": datetime.fromtimestamp(self._clock()).isoformat(),
        }

    def log_agent_action(self, action: str, data: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": datetime.fromtimestamp(self._clock()).isoformat(),
            "agent_id": self.agent_id,
            "agent_type": self.agent_type,
            "action": action,
            "data": data or {},
            "state": self.state.value,
        }
        logger.debug(f"[{self.agent_type}] {action}: {data}")
        interactions = self.memory.recall("user_interactions", [])
        interactions.append(entry)
        # Same bound as the decision history
        self.memory.remember("user_interactions", interactions[-self.decision_history.maxlen:])

    async def learn_from_feedback(
        self,
        decision_id: str,
        feedback: Optional[str] = None,
        outcome: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Record user feedback about a past decision."""
        self.metrics.learning_iterations += 1
        if outcome == "success":
            self.metrics.successful_recommendations += 1
        entry = self.memory.store_episode(
            {
                "type": "learning",
                "decision_id": decision_id,
                "user_feedback": feedback,
                "outcome": outcome,
            },
            context=self.get_current_context(),
        )
        return {
            "decision_id": decision_id,
            "learning_iteration": self.metrics.learning_iterations,
            "importance_score": entry.importance_score,
        }

    async def persist_long_term_memory(self) -> bool:
        """Write long-term memory to the profile under ``agentMemory.<agent_type>``."""
        if not self.store or not self.user_id:
            return False
        try:
            profile = await self.store.get_user_data(self.user_id) or {}
            agent_memory = dict(profile.get("agentMemory") or {})
            agent_memory[self.agent_type] = {
                k: v for k, v in self.memory.long_term.items() if k != "user_profile"
            }
            await self.store.store_user_data(self.user_id, {"agentMemory": agent_memory})
        except Exception as e:
            logger.warning(f"[{self.agent_type}] Failed to persist long-term memory: {e}")
            return False
        return True

    def get_performance_metrics(self) -> Dict[str, Any]:
        return {
            **self.metrics.model_dump(),
            "agent_id": self.agent_id,
            "agent_type": self.agent_type,
            "uptime_seconds": self._clock() - self._started_at,
            "memory_usage": self.memory.usage(),
            "error_rate": self.counters.error_count,
            "errors": self.counters.model_dump(),
            "current_state": self.state.value,
            "decision_history_size": len(self.decision_history),
            "reasoning_history_size": len(self.reasoning_history),
        }


class AgentRegistry:
    """Registry mapping agent types to agent classes."""

    def __init__(self):
        self._agents: Dict[str, Type[BaseAgent]] = {}

    def register(self, agent_cls: Type[BaseAgent]) -> None:
        self._agents[agent_cls.agent_type] = agent_cls

    def get_agent(self, agent_type: str) -> Optional[Type[BaseAgent]]:
        """Get an agent class by type, or None if not registered."""
        return self._agents.get(agent_type)

    def list_agents(self) -> List[str]:
        """List all registered agent types."""
        return list(self._agents.keys())

    async def create_agent(self, agent_type: str, user_id: Optional[str] = None, **kwargs: Any) -> BaseAgent:
        agent_cls = self.get_agent(agent_type)
        if agent_cls is None:
            raise KeyError(f"Unknown agent type: {agent_type}")
        return await agent_cls.create(user_id, **kwargs)


# Global registry instance
_registry = AgentRegistry()


def get_registry() -> AgentRegistry:
    """Get the global agent registry."""
    return _registry
