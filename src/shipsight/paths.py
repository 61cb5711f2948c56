"""Output location layout: month folder, artifact folders and the ledger."""

import logging
from datetime import datetime
from typing import Callable, Optional

from .config import ShipSightConfig
from .errors import LedgerIOError, PermissionDenied
from .ledger import LedgerStore
from .models.ledger import Mode
from .reservation import ReservationAuthority
from .storage import DirectoryStore

logger = logging.getLogger(__name__)

FORWARD_DIR = "forward"
REVERSE_DIR = "reverse"


def month_folder_name(when: datetime) -> str:
    """Folder name for a calendar month, e.g. 'October 2026'."""
    return when.strftime("%B %Y")


class OutputLocation:
    """The active output folder with its ledger and reservation authority.

    Owned by the station; switching folders builds a new instance so the
    ledger table, the reservations and the directory handle are replaced
    together.
    """

    def __init__(
        self,
        root: DirectoryStore,
        base: DirectoryStore,
        month_name: Optional[str],
        ledger: LedgerStore,
    ):
        self.root = root
        self.base = base
        self.month_name = month_name
        self.ledger = ledger
        self.reservations = ReservationAuthority(ledger)

    @property
    def name(self) -> str:
        return self.root.name

    def artifact_dir(self, mode: Mode, identifier: str) -> DirectoryStore:
        """Directory a recording for (identifier, mode) is saved into."""
        if mode == Mode.FORWARD:
            return self.base.get_or_create_subdirectory(FORWARD_DIR)
        reverse = self.base.get_or_create_subdirectory(REVERSE_DIR)
        return reverse.get_or_create_subdirectory(identifier)

    def ledger_path(self, mode: Mode, identifier: str, filename: str = "") -> str:
        """Path written to the ledger File column, relative to the output root.

        Returns '/<month>/forward/<file>' or '/<month>/reverse/<code>/<file>';
        with no filename, a reverse path names the pose directory itself.
        """
        parts = [self.month_name] if self.month_name else []
        if mode == Mode.FORWARD:
            parts.append(FORWARD_DIR)
        else:
            parts.extend([REVERSE_DIR, identifier])
        prefix = "/" + "/".join(parts) + "/"
        return prefix + filename


def open_output_location(
    root: DirectoryStore,
    config: ShipSightConfig,
    clock: Callable[[], datetime] = datetime.now,
    on_ledger_error: Optional[Callable[[LedgerIOError], None]] = None,
) -> OutputLocation:
    """Prepare an output folder for recording and load its ledger.

    Raises:
        PermissionDenied: If the store refuses write access
    """
    if not root.request_write_permission():
        raise PermissionDenied(root.name)

    month_name = None
    base = root
    if config.month_folders:
        month_name = month_folder_name(clock())
        base = root.get_or_create_subdirectory(month_name)

    base.get_or_create_subdirectory(FORWARD_DIR)
    base.get_or_create_subdirectory(REVERSE_DIR)

    ledger = LedgerStore(
        base,
        filename=config.ledger_filename,
        date_format=config.date_format,
        time_format=config.time_format,
        on_error=on_ledger_error,
    )
    ledger.load()
    logger.info(f"Output folder set to {root.name} ({len(ledger)} ledger row(s))")
    return OutputLocation(root=root, base=base, month_name=month_name, ledger=ledger)
