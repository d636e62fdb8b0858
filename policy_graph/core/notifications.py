"""Editor notifications.

The canvas surfaces rejected edits as short warnings (the "toasts" of the
editor UI). The core has no UI of its own, so a notification is a
structured log line plus an optional in-process sink the host application
can drain and render.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """A single user-visible message."""

    event: str
    message: str
    level: str = "warning"
    details: dict[str, Any] = field(default_factory=dict)


NotificationSink = Callable[[Notification], None]


def notify(
    event: str,
    message: str,
    *,
    level: str = "warning",
    details: dict[str, Any] | None = None,
    sink: NotificationSink | None = None,
) -> Notification:
    """Emit a notification event.

    Always logs a structured message; forwards to ``sink`` when given.
    """

    notification = Notification(event=event, message=message, level=level, details=details or {})
    logger.log(
        logging.WARNING if level == "warning" else logging.INFO,
        "notify:%s %s",
        event,
        message,
        extra={"event": event, "details": notification.details},
    )
    if sink is not None:
        sink(notification)
    return notification
