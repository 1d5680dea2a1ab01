"""Engine configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Final, Self

import anyenv
from platformdirs import user_data_dir
from pydantic import BaseModel, ConfigDict, Field, ValidationError
import yamling

from opentray.exceptions import ConfigValidationError


APP_NAME: Final = "opentray"
DATA_DIR: Final = Path(user_data_dir(APP_NAME, appauthor=False))
DEFAULT_ARCHIVE_FILE: Final = "archived_sessions.json"
DEFAULT_PORT: Final = 4096
MAX_PORT_SCAN: Final = 10
DIRECTORY_HEADER: Final = "x-opencode-directory"
UNKNOWN_DIRECTORY: Final = "Unknown"


class TrayConfig(BaseModel):
    """Tunables for discovery, the push channel and local persistence."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = "127.0.0.1"
    """Host that is probed for running instances."""

    base_port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    """First port of the scanned range."""

    port_count: int = Field(default=MAX_PORT_SCAN, ge=1)
    """Number of contiguous ports scanned from base_port."""

    probe_timeout: float = Field(default=1.0, gt=0)
    """Time bound in seconds for each health / directory probe."""

    request_timeout: float = Field(default=30.0, gt=0)
    """Timeout in seconds for regular API requests."""

    initial_attempts: int = Field(default=3, ge=1)
    """Discovery attempts of the initial burst before relaxed polling."""

    retry_delay: float = Field(default=2.0, ge=0)
    """Pause in seconds between attempts of the initial burst."""

    poll_interval: float = Field(default=10.0, gt=0)
    """Steady-state discovery interval in seconds."""

    debounce_window: float = Field(default=0.1, ge=0)
    """Quiescence window in seconds for coalescing session.updated events."""

    directory_header: str = DIRECTORY_HEADER
    """Header carrying the working directory on scoped requests."""

    archive_path: Path = Field(default_factory=lambda: DATA_DIR / DEFAULT_ARCHIVE_FILE)
    """File holding the archived sessions."""

    auto_select: bool = True
    """Select the instance automatically when discovery finds exactly one."""

    @property
    def ports(self) -> range:
        """The scanned port range."""
        return range(self.base_port, self.base_port + self.port_count)

    @classmethod
    def from_file(cls, path: str | Path) -> Self:
        """Load configuration from a YAML or JSON file.

        Raises:
            ConfigValidationError: If the file is not valid YAML / JSON or the
                values do not validate.
        """
        path = Path(path)
        content = path.read_text(encoding="utf-8")
        try:
            if path.suffix == ".json":
                data = anyenv.load_json(content, return_type=dict)
            else:
                data = yamling.load_yaml(content, verify_type=dict)
        except (anyenv.JsonLoadError, yamling.YAMLError, TypeError, ValueError) as e:
            msg = f"Invalid config file {path}: {e}"
            raise ConfigValidationError(msg) from e
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            msg = f"Invalid config values in {path}: {e}"
            raise ConfigValidationError(msg) from e
