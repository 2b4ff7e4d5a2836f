"""Degrade-vs-fatal result type for non-critical pipeline stages."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import structlog

T = TypeVar("T")


@dataclass(frozen=True)
class StageOutcome(Generic[T]):
    stage: str
    value: T
    degraded: bool = False
    error: Optional[str] = None


async def run_degradable(
    stage: str,
    call: Callable[[], Awaitable[T]],
    *,
    default: Callable[[], T],
    logger: Optional[Any] = None,
) -> StageOutcome[T]:
    """Await ``call``; on any exception log it and return ``default()`` marked degraded.

    Only stages whose failure must not abort the query go through here.
    """
    log = logger or structlog.get_logger("nlq.pipeline")
    try:
        value = await call()
    except Exception as e:
        log.warning("stage_degraded", stage=stage, error=str(e), error_type=type(e).__name__)
        return StageOutcome(stage=stage, value=default(), degraded=True, error=str(e))
    return StageOutcome(stage=stage, value=value)
