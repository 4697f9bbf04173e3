"""Process-wide runtime flags shared across modules."""
from __future__ import annotations

_stats_broadcast_active = False


def set_stats_broadcast_active(active: bool) -> None:
    global _stats_broadcast_active
    _stats_broadcast_active = active


def is_stats_broadcast_active() -> bool:
    return _stats_broadcast_active
