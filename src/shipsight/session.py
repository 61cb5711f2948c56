"""Recording session state machine and the operator session log."""

import logging
from datetime import datetime
from typing import Callable, Iterator, Literal, Optional

from .capture import CaptureDevice
from .errors import (
    CaptureStartFailure,
    EmptyIdentifier,
    MissingOutputLocation,
    ModeConflict,
)
from .models.capture import Artifact
from .models.ledger import LedgerRow, Mode
from .models.session import (
    EventKind,
    LifecycleEvent,
    LogEntry,
    RecordingStatus,
    SessionState,
)
from .paths import OutputLocation
from .reservation import normalize_identifier
from .storage import generate_unique_filename

logger = logging.getLogger(__name__)

Listener = Callable[[LifecycleEvent], None]


class RecordingSession:
    """Idle/Recording state machine for one station.

    Every lifecycle event is applied to the ledger of the attached output
    location before listeners see it. All calls are synchronous: a stop
    has fully flushed and persisted the recording before the next start
    begins, so two recordings never overlap.
    """

    def __init__(
        self,
        capture: CaptureDevice,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.capture = capture
        self.clock = clock
        self.output: Optional[OutputLocation] = None
        self.selected_mode = Mode.FORWARD
        self._state = SessionState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def attach(self, output: OutputLocation) -> None:
        """Switch to another output location, stopping any active recording first."""
        if self._state.is_recording:
            self.stop()
        self.output = output

    def _emit(
        self,
        kind: EventKind,
        identifier: str,
        mode: Mode,
        message: str,
        path: Optional[str] = None,
    ) -> LifecycleEvent:
        event = LifecycleEvent(
            kind=kind,
            identifier=identifier,
            mode=mode,
            time=self.clock(),
            message=message,
            path=path,
        )
        if self.output is not None:
            self.output.ledger.record_event(event)
        for listener in self._listeners:
            listener(event)
        return event

    def submit(self, code: str, mode: Optional[Mode] = None) -> SessionState:
        """Handle a scanned or typed barcode.

        - same barcode as the active recording: stop, no restart
        - Idle: reserve, then start
        - recording another barcode: reserve the new one, stop, start again

        A rejected reservation leaves the state untouched, including an
        active recording.

        Raises:
            EmptyIdentifier: Blank barcode
            MissingOutputLocation: No output folder selected
            ModeConflict: Reverse requested during a forward recording
            ReservationError: Barcode already used for this mode
            CaptureStartFailure: The capture device refused to start; state is Idle
        """
        mode = mode or self.selected_mode
        code = normalize_identifier(code)
        if not code:
            raise EmptyIdentifier()

        current = self._state
        if current.is_recording and code == current.identifier:
            logger.info(f"Same barcode {code} submitted; stopping without restart")
            self.stop()
            return self._state

        if self.output is None:
            raise MissingOutputLocation()
        if mode == Mode.REVERSE and current.is_recording and current.mode == Mode.FORWARD:
            raise ModeConflict()

        self.output.reservations.reserve(code, mode)

        if current.is_recording:
            self.stop()
        self._start(code, mode)
        return self._state

    def _start(self, code: str, mode: Mode) -> None:
        if not self.capture.start_session(code):
            self._state = SessionState(status=RecordingStatus.IDLE, mode=mode)
            self._emit(EventKind.ERROR, code, mode, "Failed to start recording")
            raise CaptureStartFailure(code)

        self._state = SessionState(status=RecordingStatus.RECORDING, identifier=code, mode=mode)
        logger.info(f"Recording {code} ({mode.value})")
        self._emit(EventKind.STARTED, code, mode, f"Started recording for barcode: {code}")

    def stop(self) -> Optional[str]:
        """Stop the active recording, persist its artifact and return to Idle.

        Returns:
            Ledger path of the saved recording, or None if nothing was saved
        """
        current = self._state
        if not current.is_recording:
            return None

        code = current.identifier
        mode = current.mode
        artifact = self.capture.stop_session()
        self._state = SessionState(status=RecordingStatus.IDLE, mode=mode)

        saved_path = None
        if artifact is None:
            self._emit(EventKind.ERROR, code, mode, "No recording data captured")
        else:
            saved_path = self._persist(artifact, code, mode)

        logger.info(f"Stopped {code} ({mode.value})")
        self._emit(EventKind.STOPPED, code, mode, f"Recording stopped for barcode: {code}")
        return saved_path

    def _persist(self, artifact: Artifact, code: str, mode: Mode) -> Optional[str]:
        output = self.output
        if output is None:
            self._emit(EventKind.ERROR, code, mode, "No output folder selected - recording not saved")
            return None
        if not output.root.request_write_permission():
            self._emit(EventKind.ERROR, code, mode, "Folder permission denied")
            return None

        try:
            directory = output.artifact_dir(mode, code)
            filename = generate_unique_filename(directory, code, f".{artifact.extension}")
            directory.write_all(directory.get_or_create_file(filename), artifact.data)
        except OSError as e:
            logger.error(f"Failed to save recording for {code}: {e}")
            self._emit(EventKind.ERROR, code, mode, "Failed to save recording to folder")
            return None

        path = output.ledger_path(mode, code, filename)
        self._emit(EventKind.SAVED, code, mode, f"Recording saved: {filename}", path=path)
        return path


class SessionLog:
    """Append-only operator log.

    A projection of what happened for display; the ledger is the source of
    truth and nothing reads ledger data back out of these messages.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        time_format: str = "%H:%M:%S",
    ):
        self.clock = clock
        self.time_format = time_format
        self.entries: list[LogEntry] = []

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def add(
        self,
        message: str,
        status: Literal["info", "success", "error"] = "info",
        tag: Optional[str] = None,
        image: Optional[bytes] = None,
    ) -> LogEntry:
        entry = LogEntry(
            time=self.clock().strftime(self.time_format),
            status=status,
            message=message,
            tag=tag,
            image=image,
        )
        self.entries.append(entry)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.add(message, "info")

    def success(self, message: str, tag: Optional[str] = None, image: Optional[bytes] = None) -> LogEntry:
        return self.add(message, "success", tag=tag, image=image)

    def error(self, message: str, tag: Optional[str] = None, image: Optional[bytes] = None) -> LogEntry:
        return self.add(message, "error", tag=tag, image=image)

    def record_event(self, event: LifecycleEvent) -> LogEntry:
        status = "error" if event.kind == EventKind.ERROR else "success"
        entry = LogEntry(
            time=event.time.strftime(self.time_format),
            status=status,
            message=event.message,
        )
        self.entries.append(entry)
        return entry

    def add_history(self, rows: list[LedgerRow]) -> None:
        """Prepend one entry per ledger row loaded from an output location."""
        history = []
        for row in rows:
            times = row.start_time
            if row.end_time:
                times = f"{times} → {row.end_time}".strip()
            file_info = f" — {row.file_path}" if row.file_path else ""
            times_info = f" ({times})" if times else ""
            history.append(
                LogEntry(
                    time=row.start_time or self.clock().strftime(self.time_format),
                    status="info",
                    message=f"Order {row.identifier}: {row.mode.value}{file_info}{times_info}",
                )
            )
        self.entries[:0] = history
