"""
Configuration for Tether.

Values come from defaults, then ``TETHER_*`` environment variables,
then explicit overrides (CLI options or keyword arguments).
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict

from tether.core.exceptions import ConfigurationError


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {raw!r}")


@dataclass
class TetherConfig:
    """Runtime configuration shared by the session, locator and replayer."""
    highlight_elements: bool = False
    snapshot_timeout: float = 10.0  # seconds per snapshot round trip
    state_retries: int = 3
    retry_backoff: float = 0.5  # seconds, doubled after each failed attempt
    max_nodes: int = 20000  # element cap for one snapshot
    proximity_tolerance: float = 50.0  # pixels between box centres
    max_text_match_length: int = 150
    file_uploader_max_depth: int = 3
    report_dir: str = "./tether_reports"
    headless: bool = False

    ENV_PREFIX = "TETHER_"

    # env suffix -> field name
    ENV_FIELDS = {
        "HIGHLIGHT": "highlight_elements",
        "SNAPSHOT_TIMEOUT": "snapshot_timeout",
        "STATE_RETRIES": "state_retries",
        "RETRY_BACKOFF": "retry_backoff",
        "MAX_NODES": "max_nodes",
        "PROXIMITY_TOLERANCE": "proximity_tolerance",
        "MAX_TEXT_MATCH": "max_text_match_length",
        "FILE_UPLOADER_DEPTH": "file_uploader_max_depth",
        "REPORT_DIR": "report_dir",
        "HEADLESS": "headless",
    }

    def __post_init__(self):
        if self.snapshot_timeout <= 0:
            raise ConfigurationError("snapshot_timeout must be positive")
        if self.state_retries < 1:
            raise ConfigurationError("state_retries must be at least 1")
        if self.retry_backoff < 0:
            raise ConfigurationError("retry_backoff must not be negative")
        if self.max_nodes < 1:
            raise ConfigurationError("max_nodes must be at least 1")
        if self.proximity_tolerance < 0:
            raise ConfigurationError("proximity_tolerance must not be negative")
        if self.file_uploader_max_depth < 0:
            raise ConfigurationError("file_uploader_max_depth must not be negative")

    @classmethod
    def from_env(cls, environ: Dict[str, str] = None, **overrides: Any) -> "TetherConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (tests)
            **overrides: Explicit values; ``None`` values are ignored so
                unset CLI options fall through to the environment.

        Raises:
            ConfigurationError: If a variable cannot be parsed.
        """
        environ = os.environ if environ is None else environ
        casters = cls._casters()
        values: Dict[str, Any] = {}

        for suffix, name in cls.ENV_FIELDS.items():
            raw = environ.get(cls.ENV_PREFIX + suffix)
            if raw is None:
                continue
            try:
                values[name] = casters[name](raw)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {cls.ENV_PREFIX + suffix}: {e}"
                ) from e

        for name, value in overrides.items():
            if name not in casters:
                raise ConfigurationError(f"Unknown config option: {name}")
            if value is not None:
                values[name] = value

        return cls(**values)

    @classmethod
    def _casters(cls) -> Dict[str, Callable[[str], Any]]:
        casters: Dict[str, Callable[[str], Any]] = {}
        for f in fields(cls):
            default_type = type(f.default)
            if default_type is bool:
                casters[f.name] = _parse_bool
            else:
                casters[f.name] = default_type
        return casters
