"""Pydantic models for ledger rows."""

from enum import Enum

from pydantic import BaseModel, Field


class Mode(str, Enum):
    """Recording mode. Uniqueness is scoped per (identifier, mode)."""

    FORWARD = "forward"
    REVERSE = "reverse"


LEDGER_HEADER = ("Date", "StartTime", "EndTime", "OrderID", "Mode", "File")


class LedgerRow(BaseModel):
    """One row of the session ledger workbook.

    Exactly one row exists per (identifier, mode) within an output location.
    Empty strings stand for "not known yet" (EndTime before the recording
    stops, File before an artifact is saved).
    """

    date: str = Field(default="", description="Calendar date of the first start")
    start_time: str = Field(default="", description="Time the recording started")
    end_time: str = Field(default="", description="Time the recording stopped")
    identifier: str = Field(min_length=1, description="Scanned barcode (OrderID column)")
    mode: Mode = Field(description="forward or reverse")
    file_path: str = Field(default="", description="Artifact path relative to the output root")

    model_config = {"frozen": True}

    @property
    def key(self) -> tuple[str, Mode]:
        return (self.identifier, self.mode)

    def as_cells(self) -> list[str]:
        """Cell values in LEDGER_HEADER order."""
        return [
            self.date,
            self.start_time,
            self.end_time,
            self.identifier,
            self.mode.value,
            self.file_path,
        ]


class LedgerUpdate(BaseModel):
    """Fields carried by an upsert. None means "not supplied"."""

    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    file_path: str | None = None

    model_config = {"frozen": True}
