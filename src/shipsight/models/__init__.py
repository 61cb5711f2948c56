"""Pydantic models for ShipSight."""

from .capture import Artifact, Still
from .ledger import LEDGER_HEADER, LedgerRow, LedgerUpdate, Mode
from .session import (
    POSE_ORDER,
    EventKind,
    LifecycleEvent,
    LogEntry,
    Pose,
    PoseCapture,
    RecordingStatus,
    SessionState,
)

__all__ = [
    # Ledger
    "LEDGER_HEADER",
    "LedgerRow",
    "LedgerUpdate",
    "Mode",
    # Capture
    "Artifact",
    "Still",
    # Session
    "EventKind",
    "LifecycleEvent",
    "LogEntry",
    "POSE_ORDER",
    "Pose",
    "PoseCapture",
    "RecordingStatus",
    "SessionState",
]
