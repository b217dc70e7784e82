"""Provide the public `plan_monitor` package exports."""

from __future__ import annotations

from .change_detector import has_changed
from .layout import LayoutConfig, build_layout, compute_levels, layout
from .synchronizer import PollingSynchronizer, SessionState, SyncListener, TerminationReason

__all__ = [
    "LayoutConfig",
    "PollingSynchronizer",
    "SessionState",
    "SyncListener",
    "TerminationReason",
    "build_layout",
    "compute_levels",
    "has_changed",
    "layout",
]
