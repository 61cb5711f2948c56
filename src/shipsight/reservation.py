"""Barcode reservation against the ledger."""

import logging
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .errors import DuplicateBarcode, EmptyIdentifier
from .ledger import LedgerStore
from .models.ledger import LedgerRow, LedgerUpdate, Mode

logger = logging.getLogger(__name__)


class Reservation(BaseModel):
    """An accepted claim on an (identifier, mode) pair."""

    identifier: str
    mode: Mode

    model_config = {"frozen": True}


def normalize_identifier(identifier: str) -> str:
    return identifier.strip()


class ReservationAuthority:
    """Decides whether an (identifier, mode) pair may start a new recording.

    A pair is taken once it has a ledger row or has been accepted by this
    authority before; accepted pairs are remembered in memory even if no
    row is ever written, so each pair is accepted at most once per output
    location. The same barcode may be reserved once per mode.
    """

    def __init__(self, ledger: LedgerStore):
        self.ledger = ledger
        self._claimed: set[tuple[str, Mode]] = set()

    def is_available(self, identifier: str, mode: Mode) -> bool:
        code = normalize_identifier(identifier)
        if not code:
            return False
        if (code, mode) in self._claimed:
            return False
        return self.ledger.find_by_key(code, mode) is None

    def reserve(self, identifier: str, mode: Mode) -> Reservation:
        """Claim (identifier, mode) for a new recording.

        Does not write a ledger row; the row materializes on the first
        started event (or via `materialize` for reverse photo sessions).

        Raises:
            EmptyIdentifier: If the identifier is blank after trimming
            DuplicateBarcode: If the pair is already in the ledger or was reserved earlier
        """
        code = normalize_identifier(identifier)
        if not code:
            raise EmptyIdentifier()
        if not self.is_available(code, mode):
            logger.info(f"Rejected duplicate barcode {code} ({mode.value})")
            raise DuplicateBarcode(code, mode.value)

        self._claimed.add((code, mode))
        logger.info(f"Reserved barcode {code} ({mode.value})")
        return Reservation(identifier=code, mode=mode)

    def materialize(self, identifier: str, mode: Mode, when: datetime) -> Optional[LedgerRow]:
        """Insert the ledger row for a pair right away, with Date and StartTime.

        Used when reverse photos begin so another station reading the same
        ledger sees the barcode as taken even if no video is ever saved.
        Returns None if a row already existed.
        """
        code = normalize_identifier(identifier)
        if not code:
            raise EmptyIdentifier()
        if self.ledger.find_by_key(code, mode) is not None:
            return None

        self._claimed.add((code, mode))
        return self.ledger.upsert(
            code,
            mode,
            LedgerUpdate(
                date=when.strftime(self.ledger.date_format),
                start_time=when.strftime(self.ledger.time_format),
            ),
        )
