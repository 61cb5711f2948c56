"""Tests for the ledger store."""

from datetime import datetime

from shipsight.codec import decode, encode
from shipsight.errors import LedgerFormatError, LedgerIOError
from shipsight.ledger import LedgerStore, merge_row
from shipsight.models.ledger import LedgerRow, LedgerUpdate, Mode
from shipsight.models.session import EventKind, LifecycleEvent

from conftest import FlakyStore, truncated_sheet_workbook


def _ledger_rows(output_dir):
    return decode((output_dir / "session.xlsx").read_bytes())


def test_load_creates_header_only_ledger(output_store, output_dir):
    """Loading a folder without a ledger creates one with just the header."""
    store = LedgerStore(output_store)
    assert store.load() == []

    ledger_file = output_dir / "session.xlsx"
    assert ledger_file.exists()
    assert ledger_file.stat().st_size > 0
    assert decode(ledger_file.read_bytes()) == []


def test_load_reads_existing_rows(output_store, output_dir):
    rows = [LedgerRow(date="2026-10-01", start_time="08:00:00", identifier="OLD1", mode=Mode.FORWARD)]
    (output_dir / "session.xlsx").write_bytes(encode(rows))

    store = LedgerStore(output_store)
    assert store.load() == rows
    assert store.find_by_key("OLD1", Mode.FORWARD) == rows[0]
    assert store.find_by_key("OLD1", Mode.REVERSE) is None


def test_upsert_inserts_and_rewrites_file(output_store, output_dir):
    store = LedgerStore(output_store)
    store.load()

    row = store.upsert("ABC", Mode.FORWARD, LedgerUpdate(date="2026-10-18", start_time="09:30:00"))

    assert row == LedgerRow(date="2026-10-18", start_time="09:30:00", identifier="ABC", mode=Mode.FORWARD)
    assert _ledger_rows(output_dir) == [row]


def test_upsert_existing_non_empty_wins(output_store):
    store = LedgerStore(output_store)
    store.load()
    store.upsert("ABC", Mode.FORWARD, LedgerUpdate(date="2026-10-18", start_time="09:30:00"))

    row = store.upsert(
        "ABC",
        Mode.FORWARD,
        LedgerUpdate(date="2026-10-19", start_time="11:00:00", end_time="11:05:00"),
    )

    assert row.date == "2026-10-18"
    assert row.start_time == "09:30:00"
    assert row.end_time == "11:05:00"
    assert len(store) == 1


def test_upsert_is_idempotent(output_store, output_dir):
    """Applying the same update twice gives the same row as applying it once."""
    store = LedgerStore(output_store)
    store.load()
    update = LedgerUpdate(end_time="10:00:00", file_path="/October 2026/forward/Q.webm")

    once = store.upsert("Q", Mode.FORWARD, update)
    twice = store.upsert("Q", Mode.FORWARD, update)

    assert once == twice
    assert _ledger_rows(output_dir) == [once]


def test_upsert_keeps_modes_apart(output_store):
    store = LedgerStore(output_store)
    store.load()
    store.upsert("X1", Mode.FORWARD, LedgerUpdate(start_time="09:00:00"))
    store.upsert("X1", Mode.REVERSE, LedgerUpdate(start_time="09:10:00"))

    assert [row.key for row in store.rows] == [("X1", Mode.FORWARD), ("X1", Mode.REVERSE)]


def test_upsert_picks_up_rows_written_by_someone_else(output_store, output_dir):
    """Each upsert re-reads the file before rewriting it."""
    store = LedgerStore(output_store)
    store.load()
    external = LedgerRow(start_time="08:00:00", identifier="EXT", mode=Mode.FORWARD)
    (output_dir / "session.xlsx").write_bytes(encode([external]))

    store.upsert("MINE", Mode.FORWARD, LedgerUpdate(start_time="09:00:00"))

    assert [row.identifier for row in _ledger_rows(output_dir)] == ["EXT", "MINE"]
    assert store.find_by_key("EXT", Mode.FORWARD) == external


def test_write_failure_is_reported_not_raised(tmp_path):
    root = tmp_path / "flaky"
    root.mkdir()
    store_dir = FlakyStore(root)
    errors: list[LedgerIOError] = []
    store = LedgerStore(store_dir, on_error=errors.append)
    store.load()

    store_dir.fail_writes = True
    row = store.upsert("W1", Mode.FORWARD, LedgerUpdate(start_time="09:00:00"))

    assert row.identifier == "W1"
    assert store.find_by_key("W1", Mode.FORWARD) is not None
    assert len(errors) == 1
    assert isinstance(store.last_error, LedgerIOError)
    assert decode((root / "session.xlsx").read_bytes()) == []


def test_rows_lost_to_a_failed_write_are_written_later(tmp_path):
    root = tmp_path / "flaky"
    root.mkdir()
    store_dir = FlakyStore(root)
    store = LedgerStore(store_dir)
    store.load()

    store_dir.fail_writes = True
    store.upsert("LOST", Mode.FORWARD, LedgerUpdate(start_time="09:00:00"))
    store_dir.fail_writes = False
    store.upsert("NEXT", Mode.FORWARD, LedgerUpdate(start_time="09:05:00"))

    persisted = decode((root / "session.xlsx").read_bytes())
    assert [row.identifier for row in persisted] == ["LOST", "NEXT"]


def test_load_failure_keeps_store_usable(tmp_path):
    root = tmp_path / "flaky"
    root.mkdir()
    store = LedgerStore(FlakyStore(root, fail_reads=True))

    assert store.load() == []
    assert isinstance(store.last_error, LedgerIOError)


def test_corrupt_ledger_is_reported(output_store, output_dir):
    (output_dir / "session.xlsx").write_bytes(b"corrupted")
    errors = []
    store = LedgerStore(output_store, on_error=errors.append)

    assert store.load() == []
    assert len(errors) == 1


def test_load_switches_directory(tmp_path):
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.mkdir()
    second.mkdir()
    (first / "session.xlsx").write_bytes(encode([LedgerRow(identifier="F", mode=Mode.FORWARD)]))

    store = LedgerStore(FlakyStore(first))
    store.load()
    assert store.find_by_key("F", Mode.FORWARD) is not None

    store.load(FlakyStore(second))
    assert store.rows == []
    assert (second / "session.xlsx").exists()


def test_record_event_maps_lifecycle_to_fields(output_store):
    store = LedgerStore(output_store)
    store.load()
    t0 = datetime(2026, 10, 18, 9, 30, 0)
    t1 = datetime(2026, 10, 18, 9, 32, 15)

    store.record_event(LifecycleEvent(kind=EventKind.STARTED, identifier="ABC", mode=Mode.FORWARD, time=t0))
    store.record_event(LifecycleEvent(
        kind=EventKind.SAVED, identifier="ABC", mode=Mode.FORWARD, time=t1,
        path="/October 2026/forward/ABC.webm",
    ))
    assert store.record_event(LifecycleEvent(
        kind=EventKind.ERROR, identifier="ABC", mode=Mode.FORWARD, time=t1,
    )) is None

    assert store.find_by_key("ABC", Mode.FORWARD) == LedgerRow(
        date="2026-10-18",
        start_time="09:30:00",
        end_time="09:32:15",
        identifier="ABC",
        mode=Mode.FORWARD,
        file_path="/October 2026/forward/ABC.webm",
    )


def test_merge_row_without_existing_uses_update():
    row = merge_row(None, "N1", Mode.REVERSE, LedgerUpdate(file_path="/x/"))
    assert row == LedgerRow(identifier="N1", mode=Mode.REVERSE, file_path="/x/")


def test_unreadable_ledger_is_never_overwritten(output_store, output_dir):
    ledger_file = output_dir / "session.xlsx"
    ledger_file.write_bytes(b"not a workbook")
    errors = []
    store = LedgerStore(output_store, on_error=errors.append)
    store.load()

    row = store.upsert("NEW", Mode.FORWARD, LedgerUpdate(start_time="09:00:00"))

    assert ledger_file.read_bytes() == b"not a workbook"
    assert store.find_by_key("NEW", Mode.FORWARD) == row
    assert len(errors) == 2


def test_row_kept_in_memory_is_written_once_ledger_is_readable(output_store, output_dir):
    ledger_file = output_dir / "session.xlsx"
    ledger_file.write_bytes(b"not a workbook")
    store = LedgerStore(output_store)
    store.load()
    store.upsert("HELD", Mode.FORWARD, LedgerUpdate(start_time="09:00:00"))

    old = LedgerRow(start_time="08:00:00", identifier="OLD", mode=Mode.FORWARD)
    ledger_file.write_bytes(encode([old]))
    store.upsert("NEXT", Mode.FORWARD, LedgerUpdate(start_time="09:05:00"))

    assert [row.identifier for row in _ledger_rows(output_dir)] == ["OLD", "HELD", "NEXT"]


def test_damaged_sheet_is_reported_on_load(output_store, output_dir):
    damaged = truncated_sheet_workbook(
        [LedgerRow(start_time="09:00:00", identifier=f"D{i}", mode=Mode.FORWARD) for i in range(20)]
    )
    (output_dir / "session.xlsx").write_bytes(damaged)
    store = LedgerStore(output_store)

    assert store.load() == []
    assert isinstance(store.last_error, LedgerFormatError)
    assert (output_dir / "session.xlsx").read_bytes() == damaged
