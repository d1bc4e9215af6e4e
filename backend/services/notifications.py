"""
Notification hook for assignment changes, cancellations and automatic
finalization.

Services build NotificationEvents while the match row still exists (recipients
are resolved before deletion) and hand them to the injected Notifier only after
their transaction has committed. Delivery and retry belong to the notifier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from models.match import Match
from models.user import User
from ops.ops_events import log_notification_queued

logger = logging.getLogger(__name__)

REFEREE_ASSIGNED = "referee_assigned"
REFEREE_UNASSIGNED = "referee_unassigned"
REFEREE_REPLACED = "referee_replaced"
MATCH_CANCELLED = "match_cancelled"
MATCH_FINALIZED = "match_finalized"


@dataclass(frozen=True)
class Recipient:
    user_id: str
    name: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "Recipient":
        return cls(user_id=user.id, name=user.name, email=user.email)


@dataclass(frozen=True)
class NotificationEvent:
    """One message for one recipient, with the template context it needs."""

    kind: str
    match_id: str
    recipient: Recipient
    context: Dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    async def dispatch(self, events: Sequence[NotificationEvent]) -> None: ...


class LoggingNotifier:
    """Default notifier: records each event as an ops event for the mailer to pick up."""

    async def dispatch(self, events: Sequence[NotificationEvent]) -> None:
        for ev in events:
            log_notification_queued(ev.kind, ev.recipient.user_id, ev.match_id)


def match_context(match: Match, reason: Optional[str] = None) -> Dict[str, Any]:
    ctx: Dict[str, Any] = {
        "match_name": match.name,
        "date": match.date,
        "time": match.time,
        "location": match.location,
    }
    if reason:
        ctx["reason"] = reason
    return ctx


def events_for(
    kind: str,
    match: Match,
    recipients: Sequence[User],
    reason: Optional[str] = None,
    **extra: Any,
) -> List[NotificationEvent]:
    ctx = match_context(match, reason)
    ctx.update(extra)
    return [
        NotificationEvent(kind=kind, match_id=match.id, recipient=Recipient.from_user(u), context=ctx)
        for u in recipients
    ]


async def dispatch_safely(notifier: Notifier, events: Sequence[NotificationEvent]) -> None:
    """Hand events to the notifier after commit; a notifier failure never undoes the mutation."""
    if not events:
        return
    try:
        await notifier.dispatch(events)
    except Exception:
        logger.exception("Notification dispatch failed for %d event(s)", len(events))
