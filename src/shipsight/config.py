"""Configuration management for ShipSight."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .state import StationState

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Python < 3.11


def _find_repo_root(start_dir: Path) -> Path:
    """Find repository root by walking upward looking for .git or pyproject.toml."""
    current_dir = start_dir

    while True:
        if (current_dir / ".git").exists() or (current_dir / "pyproject.toml").exists():
            return current_dir

        parent_dir = current_dir.parent

        # Stop if we reach filesystem root
        if parent_dir == current_dir:
            return start_dir

        current_dir = parent_dir


def _load_repo_config_data(repo_root: Path) -> Optional[dict]:
    """Load station settings from .shipsight/config.toml if it exists."""
    config_file = repo_root / ".shipsight" / "config.toml"

    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        # If config file is malformed, ignore it
        return None


def _get_repo_config_value(data: Optional[dict], keys: list[str]):
    """Safely get a nested repo config value."""
    if not data:
        return None
    current = data
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _default_state_file() -> Path:
    return Path.home() / ".shipsight" / "state.json"


class ShipSightConfig(BaseModel):
    """Configuration for a recording station."""

    output_path: Optional[Path] = Field(default=None, description="Output folder root")
    staging_path: Path = Field(default=Path("./shipsight_staging"))
    month_folders: bool = Field(default=True)
    ledger_filename: str = Field(default="session.xlsx")
    date_format: str = Field(default="%Y-%m-%d")
    time_format: str = Field(default="%H:%M:%S")
    state_file: Path = Field(default_factory=_default_state_file)
    log_level: str = Field(default="INFO")

    model_config = {"frozen": False}

    @classmethod
    def from_env(
        cls,
        cli_output_path: Optional[str] = None,
        cli_staging_path: Optional[str] = None,
    ) -> "ShipSightConfig":
        """Resolve configuration with the following precedence:

        1. CLI options (if provided)
        2. repo-local .shipsight/config.toml (walk upward from CWD)
        3. SHIPSIGHT_* environment variables
        4. Last output folder remembered in the state file
        5. Defaults

        Args:
            cli_output_path: Output folder from CLI --output option
            cli_staging_path: Staging folder from CLI --staging option
        """
        data = _load_repo_config_data(_find_repo_root(Path.cwd()))

        def pick(cli_value, keys: list[str], env_name: str):
            if cli_value:
                return cli_value
            repo_value = _get_repo_config_value(data, keys)
            if repo_value is not None:
                return repo_value
            return os.environ.get(env_name)

        state_file_value = pick(None, ["station", "state_file"], "SHIPSIGHT_STATE_FILE")
        state_file = Path(state_file_value).expanduser() if state_file_value else _default_state_file()

        output_value = pick(cli_output_path, ["station", "output"], "SHIPSIGHT_OUTPUT")
        if output_value:
            output_path = Path(str(output_value)).expanduser().resolve()
        else:
            output_path = StationState.load(state_file).last_output_path

        staging_value = pick(cli_staging_path, ["station", "staging"], "SHIPSIGHT_STAGING")

        month_folders = _get_repo_config_value(data, ["station", "month_folders"])
        if not isinstance(month_folders, bool):
            month_folders = _env_bool("SHIPSIGHT_MONTH_FOLDERS", True)

        return cls(
            output_path=output_path,
            staging_path=Path(str(staging_value)).expanduser() if staging_value else Path("./shipsight_staging"),
            month_folders=month_folders,
            ledger_filename=str(
                pick(None, ["ledger", "filename"], "SHIPSIGHT_LEDGER_FILENAME") or "session.xlsx"
            ),
            date_format=str(pick(None, ["ledger", "date_format"], "SHIPSIGHT_DATE_FORMAT") or "%Y-%m-%d"),
            time_format=str(pick(None, ["ledger", "time_format"], "SHIPSIGHT_TIME_FORMAT") or "%H:%M:%S"),
            state_file=state_file,
            log_level=str(pick(None, ["station", "log_level"], "SHIPSIGHT_LOG_LEVEL") or "INFO").upper(),
        )
