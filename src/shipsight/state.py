"""Remembered station state (last selected output folder)."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class StationState(BaseModel):
    """State restored when the station starts again."""

    last_output_path: Optional[Path] = None
    last_selected_at: Optional[datetime] = None

    @classmethod
    def load(cls, state_file: Path) -> "StationState":
        """Load state from JSON file."""
        if not state_file.exists():
            logger.debug(f"State file {state_file} does not exist, using empty state")
            return cls()

        try:
            with open(state_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls.model_validate(data)
        except (OSError, json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load state file {state_file}: {e}, using empty state")
            return cls()

    def save(self, state_file: Path) -> None:
        """Save state to JSON file atomically."""
        state_file.parent.mkdir(parents=True, exist_ok=True)

        temp_file = state_file.with_suffix(".tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                f.write(self.model_dump_json(indent=2))

            temp_file.replace(state_file)
            logger.debug(f"Saved state to {state_file}")

        except OSError as e:
            logger.error(f"Failed to save state to {state_file}: {e}")
            temp_file.unlink(missing_ok=True)
            raise

    def remember_output(self, output_path: Path) -> None:
        self.last_output_path = output_path
        self.last_selected_at = datetime.now(timezone.utc)
