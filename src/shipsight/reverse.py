"""Six-pose reverse inspection capture on top of a reverse recording."""

import logging
from typing import Optional, Union

from .errors import (
    MissingIdentifier,
    MissingOutputLocation,
    ModeConflict,
    NotRecording,
    SequenceViolation,
    SnapshotUnavailable,
)
from .models.capture import Still
from .models.ledger import LedgerUpdate, Mode
from .models.session import POSE_ORDER, EventKind, LifecycleEvent, Pose, PoseCapture
from .paths import REVERSE_DIR, OutputLocation
from .session import RecordingSession, SessionLog

logger = logging.getLogger(__name__)


class ReverseCaptureSequencer:
    """Enforces Front, Back, Left, Right, Top, Bottom capture order.

    Retakes may replace any pose already captured without moving the
    cursor. Capturing the sixth pose completes the cycle: the recording
    is stopped, the ledger row is finalized and the sequence resets.
    Photo save failures are logged but never abort the sequence; the
    in-memory stills stay available for review.
    """

    def __init__(self, session: RecordingSession, log: Optional[SessionLog] = None):
        self.session = session
        self.log = log if log is not None else SessionLog(clock=session.clock)
        self.is_open = False
        self.cursor = 0
        self.captured: dict[Pose, bool] = {}
        self.images: dict[Pose, Still] = {}
        session.subscribe(self._on_event)

    @property
    def expected(self) -> Optional[Pose]:
        if self.cursor >= len(POSE_ORDER):
            return None
        return POSE_ORDER[self.cursor]

    def reset(self) -> None:
        self.cursor = 0
        self.captured = {}
        self.images = {}

    def open(self) -> None:
        """Open the reverse panel and select reverse mode.

        Raises:
            ModeConflict: If a forward recording is active
        """
        state = self.session.state
        if state.is_recording and state.mode == Mode.FORWARD:
            raise ModeConflict()
        self.reset()
        self.is_open = True
        self.session.selected_mode = Mode.REVERSE

    def close(self) -> None:
        self.is_open = False
        self.reset()
        state = self.session.state
        if not (state.is_recording and state.mode == Mode.REVERSE):
            self.session.selected_mode = Mode.FORWARD

    def _on_event(self, event: LifecycleEvent) -> None:
        # A new reverse recording starts a fresh sequence; a stop abandons it
        if event.mode == Mode.REVERSE and event.kind in (EventKind.STARTED, EventKind.STOPPED):
            self.reset()

    def capture_pose(self, tag: Union[Pose, str], retake: bool = False) -> PoseCapture:
        """Capture one pose of the active reverse recording.

        Raises:
            NotRecording: No reverse recording is active
            SequenceViolation: Out-of-order pose, unknown pose, or retake of an uncaptured pose
            MissingIdentifier: No barcode on the active recording
            MissingOutputLocation: No output folder selected
            SnapshotUnavailable: The capture device produced no still
        """
        state = self.session.state
        if not (state.is_recording and state.mode == Mode.REVERSE):
            raise NotRecording()

        expected = self.expected
        try:
            pose = Pose(tag)
        except ValueError:
            raise SequenceViolation(str(tag), expected.value if expected else None)

        if retake:
            if not self.captured.get(pose):
                raise SequenceViolation(pose.value, expected.value if expected else None)
        elif pose != expected:
            raise SequenceViolation(pose.value, expected.value if expected else None)

        code = state.identifier
        if not code:
            raise MissingIdentifier()
        output = self.session.output
        if output is None:
            raise MissingOutputLocation()

        if not retake and not self.captured:
            row = output.reservations.materialize(code, Mode.REVERSE, self.session.clock())
            if row is not None:
                logger.info(f"Reserved reverse row for {code} ahead of first photo")

        still = self.session.capture.capture_still()
        if still is None:
            raise SnapshotUnavailable()

        self.images[pose] = still
        label = "Retake snapshot captured" if retake else "Snapshot captured"
        self.log.success(label, tag=pose.value, image=still.data)
        saved_path = self._save_still(output, code, pose, still)

        if not retake:
            self.captured[pose] = True
            self.cursor = min(self.cursor + 1, len(POSE_ORDER))

        completed = False
        if not retake and self.cursor == len(POSE_ORDER):
            self._complete_cycle(output, code)
            completed = True

        return PoseCapture(pose=pose, retake=retake, saved_path=saved_path, cycle_completed=completed)

    def _save_still(self, output: OutputLocation, code: str, pose: Pose, still: Still) -> Optional[str]:
        filename = f"{code}_{pose.value}.{still.extension}"
        try:
            if not output.root.request_write_permission():
                self.log.error(f"Failed to save photo for {pose.value}: folder permission denied", tag=pose.value)
                return None
            directory = output.artifact_dir(Mode.REVERSE, code)
            directory.write_all(directory.get_or_create_file(filename), still.data)
        except OSError as e:
            logger.error(f"Error saving snapshot {filename}: {e}")
            self.log.error(f"Failed to save photo for {pose.value}", tag=pose.value, image=still.data)
            return None

        self.log.success(f"Photo saved: {REVERSE_DIR}/{code}/{filename}", tag=pose.value, image=still.data)
        return output.ledger_path(Mode.REVERSE, code, filename)

    def _complete_cycle(self, output: OutputLocation, code: str) -> None:
        """Stop the recording and finalize the reverse row.

        Existing values win, so the pose directory only becomes the File
        value when no video was saved for this barcode.
        """
        self.log.success("Reverse photo capture complete")
        if self.session.state.is_recording:
            self.session.stop()

        try:
            output.artifact_dir(Mode.REVERSE, code)
        except OSError as e:
            logger.error(f"Finalize reverse error for {code}: {e}")
            self.log.error("Failed to finalize reverse capture")
        else:
            now = self.session.clock()
            output.ledger.upsert(
                code,
                Mode.REVERSE,
                LedgerUpdate(
                    end_time=now.strftime(output.ledger.time_format),
                    file_path=output.ledger_path(Mode.REVERSE, code),
                ),
            )
            self.log.success(f"Reverse assets saved to folder: {REVERSE_DIR}/{code}")

        self.reset()
