"""Pydantic models for the recording session and its event stream."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from .ledger import Mode


class RecordingStatus(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


class SessionState(BaseModel):
    """Snapshot of the recording state machine."""

    status: RecordingStatus = RecordingStatus.IDLE
    identifier: str | None = None
    mode: Mode = Mode.FORWARD

    model_config = {"frozen": True}

    @property
    def is_recording(self) -> bool:
        return self.status == RecordingStatus.RECORDING


class EventKind(str, Enum):
    STARTED = "started"
    STOPPED = "stopped"
    SAVED = "saved"
    ERROR = "error"


class LifecycleEvent(BaseModel):
    """Typed event emitted by the recording state machine.

    Drives ledger upserts directly; nothing downstream parses `message`.
    """

    kind: EventKind
    identifier: str
    mode: Mode
    time: datetime
    message: str = ""
    path: str | None = Field(default=None, description="Ledger File path of a saved artifact")

    model_config = {"frozen": True}


class LogEntry(BaseModel):
    """Operator-visible session log line."""

    time: str
    status: Literal["info", "success", "error"] = "info"
    message: str
    tag: str | None = None
    image: bytes | None = None

    model_config = {"frozen": True}


class Pose(str, Enum):
    """Reverse inspection poses in capture order."""

    FRONT = "Front"
    BACK = "Back"
    LEFT = "Left"
    RIGHT = "Right"
    TOP = "Top"
    BOTTOM = "Bottom"


POSE_ORDER: tuple[Pose, ...] = tuple(Pose)


class PoseCapture(BaseModel):
    """Outcome of one accepted pose capture."""

    pose: Pose
    retake: bool = False
    saved_path: str | None = Field(default=None, description="Ledger-style path of the saved photo")
    cycle_completed: bool = False
