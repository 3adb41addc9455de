"""Tracing utilities for debugging and observability."""

import time
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from ...schemas.agents.trace import ExecutionTrace, TraceEventType


@contextmanager
def trace_stage(
    trace: Optional[ExecutionTrace],
    stage: str,
    agent_name: str,
) -> Generator[Dict[str, Any], None, None]:
    """Context manager for tracing one pipeline stage.

    Records start/end events and measures duration. A None trace makes
    this a no-op wrapper.

    Args:
        trace: ExecutionTrace to record events to
        stage: Name of the stage being executed
        agent_name: Agent running the stage

    Yields:
        Dict to populate with result data (for the completion event)
    """
    start_time = time.time()
    result_data: Dict[str, Any] = {}

    if trace is not None:
        trace.add_event(TraceEventType.STAGE_STARTED, agent=agent_name, stage=stage)

    try:
        yield result_data
    except Exception as e:
        if trace is not None:
            trace.add_event(
                TraceEventType.STAGE_FAILED,
                agent=agent_name,
                stage=stage,
                data={"error": str(e)},
                duration_ms=(time.time() - start_time) * 1000,
            )
        raise

    if trace is not None:
        trace.add_event(
            TraceEventType.STAGE_COMPLETED,
            agent=agent_name,
            stage=stage,
            data=result_data,
            duration_ms=(time.time() - start_time) * 1000,
        )


def trace_llm_call(
    trace: Optional[ExecutionTrace],
    agent_name: str,
    prompt_preview: str,
    response_preview: Optional[str] = None,
    duration_ms: float = 0,
    fallback: bool = False,
) -> None:
    """Record an LLM call (and its fallback, if any) in the trace."""
    if trace is None:
        return
    trace.add_event(
        TraceEventType.LLM_CALL,
        agent=agent_name,
        data={
            "prompt_preview": prompt_preview[:100] + "..." if len(prompt_preview) > 100 else prompt_preview,
            "response_preview": (response_preview[:100] + "..." if response_preview and len(response_preview) > 100 else response_preview),
        },
        duration_ms=duration_ms,
    )
    if fallback:
        trace.add_event(TraceEventType.FALLBACK_TRIGGERED, agent=agent_name, data={"reason": "llm_call_failed"})


def format_trace_summary(trace: ExecutionTrace) -> str:
    """Format a trace into a human-readable summary."""
    lines = [
        f"Trace {trace.trace_id} ({trace.agent_id}: {trace.purpose})",
        f"  Duration: {trace.total_duration_ms:.0f}ms",
        f"  LLM calls: {trace.llm_calls}, fallbacks: {trace.fallbacks}",
        f"  Stages: {trace.stages_completed} completed, {trace.stages_failed} failed",
        f"  Success: {trace.success}",
    ]
    return "\n".join(lines)
