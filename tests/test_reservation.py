"""Tests for barcode reservation."""

from datetime import datetime

import pytest

from shipsight.codec import encode
from shipsight.errors import DuplicateBarcode, EmptyIdentifier
from shipsight.ledger import LedgerStore
from shipsight.models.ledger import LedgerRow, LedgerUpdate, Mode
from shipsight.reservation import ReservationAuthority


@pytest.fixture
def ledger(output_store):
    store = LedgerStore(output_store)
    store.load()
    return store


@pytest.fixture
def authority(ledger):
    return ReservationAuthority(ledger)


def test_same_barcode_once_per_mode(authority):
    """X1 forward is accepted once, rejected after, and still free in reverse."""
    accepted = authority.reserve("X1", Mode.FORWARD)
    assert accepted.identifier == "X1"
    assert accepted.mode == Mode.FORWARD

    with pytest.raises(DuplicateBarcode) as exc_info:
        authority.reserve("X1", Mode.FORWARD)
    assert exc_info.value.identifier == "X1"
    assert exc_info.value.mode == "forward"

    assert authority.reserve("X1", Mode.REVERSE).mode == Mode.REVERSE


def test_at_most_one_acceptance_per_pair(authority):
    calls = [("A", Mode.FORWARD), ("B", Mode.FORWARD), ("A", Mode.FORWARD),
             ("A", Mode.REVERSE), (" B ", Mode.FORWARD), ("A", Mode.REVERSE)]
    accepted = []
    for code, mode in calls:
        try:
            accepted.append(authority.reserve(code, mode).model_dump())
        except DuplicateBarcode:
            pass

    keys = [(item["identifier"], item["mode"]) for item in accepted]
    assert sorted(keys) == sorted(set(keys))
    assert len(keys) == 3


def test_identifier_is_trimmed(authority):
    assert authority.reserve("  Z9\t", Mode.FORWARD).identifier == "Z9"
    with pytest.raises(DuplicateBarcode):
        authority.reserve("Z9", Mode.FORWARD)


@pytest.mark.parametrize("code", ["", "   ", "\n"])
def test_blank_identifier_rejected(authority, code):
    with pytest.raises(EmptyIdentifier):
        authority.reserve(code, Mode.FORWARD)


def test_existing_ledger_row_blocks_reservation(output_store, output_dir):
    (output_dir / "session.xlsx").write_bytes(
        encode([LedgerRow(start_time="08:00:00", identifier="DONE", mode=Mode.REVERSE)])
    )
    store = LedgerStore(output_store)
    store.load()
    authority = ReservationAuthority(store)

    with pytest.raises(DuplicateBarcode):
        authority.reserve("DONE", Mode.REVERSE)
    assert authority.reserve("DONE", Mode.FORWARD).identifier == "DONE"


def test_reserve_does_not_write_a_row(authority, ledger):
    authority.reserve("LAZY", Mode.FORWARD)
    assert ledger.find_by_key("LAZY", Mode.FORWARD) is None
    assert not authority.is_available("LAZY", Mode.FORWARD)


def test_materialize_inserts_row_once(authority, ledger):
    when = datetime(2026, 10, 18, 14, 5, 0)

    row = authority.materialize("R7", Mode.REVERSE, when)
    assert row == LedgerRow(date="2026-10-18", start_time="14:05:00", identifier="R7", mode=Mode.REVERSE)
    assert authority.materialize("R7", Mode.REVERSE, when) is None
    assert not authority.is_available("R7", Mode.REVERSE)


def test_is_available_reflects_rows_added_through_ledger(authority, ledger):
    assert authority.is_available("NEW", Mode.FORWARD)
    ledger.upsert("NEW", Mode.FORWARD, LedgerUpdate(start_time="09:00:00"))
    assert not authority.is_available("NEW", Mode.FORWARD)
    assert not authority.is_available("", Mode.FORWARD)
