"""Pytest fixtures for ShipSight tests."""

import io
import zipfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import pytest

from shipsight.codec import encode
from shipsight.config import ShipSightConfig
from shipsight.models.capture import Artifact, Still
from shipsight.models.ledger import LedgerRow
from shipsight.station import Station
from shipsight.storage import LocalDirectoryStore


def truncated_sheet_workbook(rows: list[LedgerRow]) -> bytes:
    """A ledger workbook whose sheet XML is cut off halfway."""
    source = zipfile.ZipFile(io.BytesIO(encode(rows)))
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as target:
        for item in source.infolist():
            data = source.read(item.filename)
            if item.filename == "xl/worksheets/sheet1.xml":
                data = data[: len(data) // 2]
            target.writestr(item, data)
    return buffer.getvalue()


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int = 1) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeCapture:
    """In-memory capture device recording every call."""

    def __init__(self):
        self.start_ok = True
        self.artifact: Optional[Artifact] = Artifact(data=b"video-bytes", extension="webm")
        self.still: Optional[Still] = Still(data=b"\xff\xd8jpeg", media_type="image/jpeg")
        self.calls: list[tuple[str, Optional[str]]] = []
        self.active: Optional[str] = None

    def start_session(self, identifier: str) -> bool:
        self.calls.append(("start", identifier))
        if not self.start_ok:
            return False
        self.active = identifier
        return True

    def stop_session(self) -> Optional[Artifact]:
        self.calls.append(("stop", self.active))
        self.active = None
        return self.artifact

    def capture_still(self) -> Optional[Still]:
        self.calls.append(("still", self.active))
        return self.still


class FlakyStore(LocalDirectoryStore):
    """LocalDirectoryStore whose writes can be switched off."""

    def __init__(self, root: Path, fail_writes: bool = False, fail_reads: bool = False):
        super().__init__(root)
        self.fail_writes = fail_writes
        self.fail_reads = fail_reads

    def get_or_create_subdirectory(self, name: str) -> "FlakyStore":
        path = self.root / name
        path.mkdir(parents=True, exist_ok=True)
        child = FlakyStore(path)
        child.fail_writes = self.fail_writes
        child.fail_reads = self.fail_reads
        return child

    def read_all(self, file: Path) -> bytes:
        if self.fail_reads:
            raise OSError("simulated read failure")
        return super().read_all(file)

    def write_all(self, file: Path, data: bytes) -> None:
        if self.fail_writes:
            raise OSError("simulated write failure")
        super().write_all(file, data)


@pytest.fixture
def clock():
    """Clock fixed at 2026-10-18 09:30:00."""
    return FixedClock(datetime(2026, 10, 18, 9, 30, 0))


@pytest.fixture
def output_dir(tmp_path):
    """Empty output folder."""
    root = tmp_path / "output"
    root.mkdir()
    return root


@pytest.fixture
def output_store(output_dir):
    return LocalDirectoryStore(output_dir)


@pytest.fixture
def config(tmp_path, output_dir):
    """ShipSightConfig pointing at temporary folders."""
    staging = tmp_path / "staging"
    staging.mkdir()
    return ShipSightConfig(
        output_path=output_dir,
        staging_path=staging,
        state_file=tmp_path / "state" / "state.json",
    )


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def station(config, capture, clock, output_store):
    """Station with the output folder already selected."""
    st = Station(config, capture, clock=clock)
    st.select_output(output_store)
    return st


@pytest.fixture
def month_dir(output_dir):
    """Month folder created for the fixed clock."""
    return output_dir / "October 2026"
