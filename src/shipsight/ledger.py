"""Ledger store: one row per (barcode, mode) in the active output location."""

import logging
from typing import Callable, Optional

from .codec import decode, empty_ledger, encode
from .errors import EmptyIdentifier, LedgerIOError
from .models.ledger import LedgerRow, LedgerUpdate, Mode
from .models.session import EventKind, LifecycleEvent
from .storage import DirectoryStore

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_FILENAME = "session.xlsx"


def merge_row(
    existing: Optional[LedgerRow],
    identifier: str,
    mode: Mode,
    update: LedgerUpdate,
) -> LedgerRow:
    """Merge an update into a row. Existing non-empty values win.

    With no existing row, a new row is built from the update with empty
    strings for anything not supplied.
    """
    if existing is None:
        return LedgerRow(
            date=update.date or "",
            start_time=update.start_time or "",
            end_time=update.end_time or "",
            identifier=identifier,
            mode=mode,
            file_path=update.file_path or "",
        )
    return existing.model_copy(
        update={
            "date": existing.date or update.date or "",
            "start_time": existing.start_time or update.start_time or "",
            "end_time": existing.end_time or update.end_time or "",
            "file_path": existing.file_path or update.file_path or "",
        }
    )


def _update_from_row(row: LedgerRow) -> LedgerUpdate:
    return LedgerUpdate(
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
        file_path=row.file_path,
    )


class LedgerStore:
    """In-memory ledger table for one output location, flushed in full on every upsert.

    I/O failures never propagate: they are logged, remembered in
    `last_error` and passed to `on_error`. The in-memory table keeps
    serving duplicate checks for the rest of the session, and rows whose
    write failed are written again by the next successful upsert.
    """

    def __init__(
        self,
        directory: DirectoryStore,
        filename: str = DEFAULT_LEDGER_FILENAME,
        date_format: str = "%Y-%m-%d",
        time_format: str = "%H:%M:%S",
        on_error: Optional[Callable[[LedgerIOError], None]] = None,
    ):
        self.directory = directory
        self.filename = filename
        self.date_format = date_format
        self.time_format = time_format
        self.on_error = on_error
        self.last_error: Optional[LedgerIOError] = None
        self._rows: list[LedgerRow] = []

    @property
    def rows(self) -> list[LedgerRow]:
        return list(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def _report(self, error: Exception, action: str) -> None:
        if isinstance(error, LedgerIOError):
            wrapped = error
        else:
            wrapped = LedgerIOError(f"Ledger {action} failed for {self.filename}: {error}")
            wrapped.__cause__ = error
        self.last_error = wrapped
        logger.error(str(wrapped))
        if self.on_error is not None:
            self.on_error(wrapped)

    def _read_table(self):
        """Return (file handle, decoded rows), creating a header-only ledger if absent."""
        file = self.directory.get_or_create_file(self.filename)
        data = self.directory.read_all(file)
        if not data:
            self.directory.write_all(file, empty_ledger())
            return file, []
        return file, decode(data)

    def load(self, directory: Optional[DirectoryStore] = None) -> list[LedgerRow]:
        """Load the full table, optionally switching to another directory first.

        Returns:
            The rows now held in memory (empty on I/O failure for a new directory)
        """
        if directory is not None and directory is not self.directory:
            self.directory = directory
            self._rows = []

        try:
            _, rows = self._read_table()
        except (OSError, LedgerIOError) as e:
            self._report(e, "load")
            return self.rows

        self._rows = rows
        logger.debug(f"Loaded {len(rows)} ledger row(s) from {self.filename}")
        return self.rows

    def find_by_key(self, identifier: str, mode: Mode) -> Optional[LedgerRow]:
        identifier = identifier.strip()
        for row in self._rows:
            if row.identifier == identifier and row.mode == mode:
                return row
        return None

    def _reconcile(self, persisted: list[LedgerRow]) -> list[LedgerRow]:
        """Fold rows only known in memory (e.g. after a failed write) into the file's table."""
        table = list(persisted)
        index = {row.key: i for i, row in enumerate(table)}
        for row in self._rows:
            i = index.get(row.key)
            if i is None:
                index[row.key] = len(table)
                table.append(row)
            else:
                table[i] = merge_row(table[i], row.identifier, row.mode, _update_from_row(row))
        return table

    def upsert(self, identifier: str, mode: Mode, update: LedgerUpdate) -> LedgerRow:
        """Merge `update` into the (identifier, mode) row and rewrite the whole ledger.

        The ledger file is re-read first so the rewrite starts from what is
        on disk. If it cannot be read the file is left untouched and the
        row is only kept in memory until a later upsert can write it.
        Failure to read or write is reported, not raised.

        Raises:
            EmptyIdentifier: If identifier is blank
        """
        identifier = identifier.strip()
        if not identifier:
            raise EmptyIdentifier()

        file = None
        try:
            file, persisted = self._read_table()
            table = self._reconcile(persisted)
        except (OSError, LedgerIOError) as e:
            self._report(e, "reload")
            table = list(self._rows)

        position = next(
            (i for i, row in enumerate(table) if row.key == (identifier, mode)),
            None,
        )
        if position is None:
            row = merge_row(None, identifier, mode, update)
            table.append(row)
        else:
            row = merge_row(table[position], identifier, mode, update)
            table[position] = row
        self._rows = table

        if file is None:
            return row

        try:
            self.directory.write_all(file, encode(table))
        except (OSError, ValueError, LedgerIOError) as e:
            self._report(e, "write")

        return row

    def record_event(self, event: LifecycleEvent) -> Optional[LedgerRow]:
        """Apply a lifecycle event to the ledger.

        started -> Date + StartTime; stopped -> EndTime; saved -> EndTime + File.
        Error events carry nothing for the ledger.
        """
        clock = event.time.strftime(self.time_format)
        if event.kind == EventKind.STARTED:
            update = LedgerUpdate(date=event.time.strftime(self.date_format), start_time=clock)
        elif event.kind == EventKind.STOPPED:
            update = LedgerUpdate(end_time=clock)
        elif event.kind == EventKind.SAVED:
            update = LedgerUpdate(end_time=clock, file_path=event.path)
        else:
            return None
        return self.upsert(event.identifier, event.mode, update)
