"""
Timing utilities for performance logging.

``with log_step("executor.step") as timer:`` times a block and logs it;
``timer.duration_ms`` is readable once the block exits.

Logs start at DEBUG, end at INFO (with duration), or ``<event>.error``
with the error type when the block raises. Timer overhead is one
``time.perf_counter`` call on each side.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from urp.core.logging import get_logger


@dataclass
class TimingResult:
    """Result of a timed block."""

    step: str
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    status: str = "ok"
    error_info: dict[str, Any] | None = None

    def stop(self) -> TimingResult:
        """Record end time."""
        if self.ended_at is None:
            self.ended_at = time.perf_counter()
        return self

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return time.perf_counter() - self.started_at
        return self.ended_at - self.started_at

    @property
    def duration_ms(self) -> float:
        return self.duration_seconds * 1000

    def set_error(self, e: BaseException) -> TimingResult:
        self.status = "error"
        self.error_info = {"error_type": type(e).__name__, "error_message": str(e)}
        return self

    def to_log_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"duration_ms": round(self.duration_ms, 2)}
        result.update(self.metrics)
        return result

    def to_error_dict(self) -> dict[str, Any]:
        result = self.to_log_dict()
        result["status"] = "error"
        if self.error_info:
            result.update(self.error_info)
        return result


@contextmanager
def log_step(event: str, log_start: bool = True, level: str = "info", **extra_metrics: Any) -> Iterator[TimingResult]:
    """
    Context manager that logs step start/end with timing.

    Usage:
        with log_step("executor.step", index=2, step="rollup") as timer:
            out = handler(...)
        print(timer.duration_ms)

        # DEBUG executor.step.start index=2 step=rollup
        # INFO  executor.step.end   index=2 step=rollup duration_ms=3.1
    """
    log = get_logger("urp.timing")
    timer = TimingResult(step=event, metrics=dict(extra_metrics))

    if log_start:
        log.debug(f"{event}.start", **extra_metrics)

    try:
        yield timer
    except BaseException as e:
        timer.stop()
        timer.set_error(e)
        log.error(f"{event}.error", **timer.to_error_dict())
        raise
    finally:
        timer.stop()

    getattr(log, level)(f"{event}.end", **timer.to_log_dict())
