"""Error taxonomy for ShipSight."""

from typing import Optional


class ShipSightError(Exception):
    """Base class for every error raised by the recording core."""
    pass


class ReservationError(ShipSightError):
    """A barcode could not be reserved."""
    pass


class EmptyIdentifier(ReservationError):
    def __init__(self):
        super().__init__("Barcode is empty")


class DuplicateBarcode(ReservationError):
    """The (identifier, mode) pair already exists in the ledger or was reserved earlier."""

    def __init__(self, identifier: str, mode: str):
        self.identifier = identifier
        self.mode = mode
        super().__init__(f"Barcode already used for {mode} recording: {identifier}")


class SequenceError(ShipSightError):
    """A reverse pose capture was refused."""
    pass


class SequenceViolation(SequenceError):
    def __init__(self, tag: str, expected: Optional[str]):
        self.tag = tag
        self.expected = expected
        if expected is None:
            message = f"Cannot capture {tag}: all poses already captured"
        else:
            message = f"Please capture in order. Next: {expected}"
        super().__init__(message)


class NotRecording(SequenceError):
    def __init__(self):
        super().__init__("Start reverse video recording first")


class MissingIdentifier(SequenceError):
    def __init__(self):
        super().__init__("Scan barcode before capturing photos")


class SnapshotUnavailable(SequenceError):
    def __init__(self):
        super().__init__("Unable to capture snapshot")


class MissingOutputLocation(ShipSightError):
    def __init__(self):
        super().__init__("Please select an output folder first")


class PermissionDenied(ShipSightError):
    def __init__(self, location: str = ""):
        self.location = location
        suffix = f": {location}" if location else ""
        super().__init__(f"Folder permission denied{suffix}")


class CaptureStartFailure(ShipSightError):
    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Failed to start recording for barcode: {identifier}")


class ModeConflict(ShipSightError):
    """Reverse mode was requested while a forward recording is active."""

    def __init__(self):
        super().__init__("Reverse capture disabled during forward recording")


class LedgerIOError(ShipSightError):
    """Reading or writing the ledger workbook failed.

    Never propagates out of the ledger store; the event it interrupted
    still completes without durable persistence.
    """
    pass


class LedgerFormatError(LedgerIOError):
    """The ledger bytes are not a readable workbook."""
    pass
