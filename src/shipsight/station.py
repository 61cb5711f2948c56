"""Recording station: wires session, reverse sequencer, log and output location."""

import logging
from datetime import datetime
from typing import Callable, Optional, Union

from .capture import CaptureDevice
from .config import ShipSightConfig
from .errors import LedgerIOError, ShipSightError
from .models.ledger import Mode
from .models.session import Pose, PoseCapture, SessionState
from .paths import OutputLocation, open_output_location
from .reverse import ReverseCaptureSequencer
from .session import RecordingSession, SessionLog
from .storage import DirectoryStore

logger = logging.getLogger(__name__)


class Station:
    """One operator station. Constructed once by the entry point and passed around.

    Every refused action is written to the session log and re-raised so the
    caller can show it.
    """

    def __init__(
        self,
        config: ShipSightConfig,
        capture: CaptureDevice,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self.clock = clock
        self.log = SessionLog(clock=clock, time_format=config.time_format)
        self.session = RecordingSession(capture, clock=clock)
        self.session.subscribe(self.log.record_event)
        self.reverse = ReverseCaptureSequencer(self.session, log=self.log)

    @property
    def output(self) -> Optional[OutputLocation]:
        return self.session.output

    @property
    def state(self) -> SessionState:
        return self.session.state

    def _on_ledger_error(self, error: LedgerIOError) -> None:
        self.log.error(f"Ledger not saved: {error}")

    def _refused(self, error: ShipSightError) -> None:
        self.log.error(str(error))
        logger.info(f"Refused: {error}")

    def select_output(self, root: DirectoryStore) -> OutputLocation:
        """Make `root` the output folder; the previous ledger and reservations are dropped.

        Raises:
            PermissionDenied: If the folder is not writable
        """
        try:
            location = open_output_location(
                root,
                self.config,
                clock=self.clock,
                on_ledger_error=self._on_ledger_error,
            )
        except ShipSightError as e:
            self._refused(e)
            raise

        self.session.attach(location)
        self.log.add_history(location.ledger.rows)
        self.log.info(f"Output folder set to: {location.name}")
        return location

    def submit(self, code: str) -> SessionState:
        """Submit a barcode in the currently selected mode."""
        try:
            return self.session.submit(code)
        except ShipSightError as e:
            self._refused(e)
            raise

    def submit_forward(self, code: str) -> SessionState:
        """Submit a barcode for forward recording, closing the reverse panel."""
        if self.reverse.is_open:
            self.reverse.close()
        self.session.selected_mode = Mode.FORWARD
        try:
            return self.session.submit(code, Mode.FORWARD)
        except ShipSightError as e:
            self._refused(e)
            raise

    def stop(self) -> Optional[str]:
        return self.session.stop()

    def open_reverse(self) -> None:
        try:
            self.reverse.open()
        except ShipSightError as e:
            self._refused(e)
            raise

    def close_reverse(self) -> None:
        self.reverse.close()

    def capture_pose(self, tag: Union[Pose, str], retake: bool = False) -> PoseCapture:
        try:
            return self.reverse.capture_pose(tag, retake=retake)
        except ShipSightError as e:
            self._refused(e)
            raise

    def shutdown(self) -> None:
        """Stop any active recording before the process exits."""
        if self.session.state.is_recording:
            self.session.stop()
