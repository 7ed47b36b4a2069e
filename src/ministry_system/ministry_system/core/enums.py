from __future__ import annotations

from enum import Enum


class SessionState(str, Enum):
    """Lifecycle of one ministry session."""

    IDLE = "IDLE"
    RESOLVING = "RESOLVING"
    SUBSCRIBING = "SUBSCRIBING"
    LIVE = "LIVE"
    TORN_DOWN = "TORN_DOWN"


class PrecedenceRule(str, Enum):
    """Which copy survives when a member is visible from two tenants."""

    ORIGIN_WINS = "origin_wins"
    MINISTRY_WINS = "ministry_wins"
