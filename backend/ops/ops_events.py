"""
Structured ops events for match lifecycle milestones and guard rejections.
Log-level + structured event dict on a dedicated logger.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable

OPS_LOGGER_NAME = "ops_events"


def _logger() -> logging.Logger:
    return logging.getLogger(OPS_LOGGER_NAME)


def _event(event_type: str, level: int = logging.INFO, **kwargs: Any) -> None:
    """Emit a structured ops event (sorted keys)."""
    msg = f"ops_event={event_type} " + " ".join(f"{k}={v!r}" for k, v in sorted(kwargs.items()))
    _logger().log(level, msg, extra={"ops_event_type": event_type, "ops_event": {**kwargs}})


def log_sweep_start(active_count: int) -> float:
    """Log sweep tick start; return start time for duration calculation."""
    _event("sweep_start", active_count=active_count)
    return time.perf_counter()


def log_sweep_end(
    finalized_count: int,
    skipped_count: int,
    failed_ids: Iterable[str],
    duration_seconds: float,
) -> None:
    payload: Dict[str, Any] = {
        "finalized_count": finalized_count,
        "skipped_count": skipped_count,
        "duration_seconds": round(duration_seconds, 4),
    }
    failed = sorted(failed_ids)
    if failed:
        payload["failed_ids"] = failed
    _event("sweep_end", level=logging.WARNING if failed else logging.INFO, **payload)


def log_match_archived(match_id: str, history_entry_id: str, state: str, reason: str) -> None:
    _event(
        "match_archived",
        match_id=match_id,
        history_entry_id=history_entry_id,
        state=state,
        reason=reason,
    )


def log_guard_rejection(operation: str, code: str, match_id: str | None = None) -> None:
    """Log a refused mutation (reason code, never the caller's payload)."""
    payload: Dict[str, Any] = {"operation": operation, "code": code}
    if match_id is not None:
        payload["match_id"] = match_id
    _event("guard_rejection", **payload)


def log_notification_queued(kind: str, recipient_id: str, match_id: str) -> None:
    _event("notification_queued", kind=kind, recipient_id=recipient_id, match_id=match_id)


def log_rating_recorded(referee_id: str, history_entry_id: str, stars: int, average: float, count: int) -> None:
    _event(
        "rating_recorded",
        referee_id=referee_id,
        history_entry_id=history_entry_id,
        stars=stars,
        average=round(average, 4),
        count=count,
    )
