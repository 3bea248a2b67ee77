"""Event and state enums shared by the batchlog components.

Reported events themselves are opaque: whatever a handler returns is what the
flush sink receives.
"""

from __future__ import annotations

from enum import Enum


class EventType(str, Enum):
    """Built-in event types registered by ``create_logger``."""

    CLICK = "click"
    PAGE_VIEW = "page_view"


class SchedulerState(str, Enum):
    """Lifecycle states of a scheduler instance."""

    GATED = "gated"  # init action has not settled yet
    IDLE = "idle"
    FLUSHING = "flushing"
    TERMINATED = "terminated"  # terminal
