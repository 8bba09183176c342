from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from core.emulator import DEFAULT_RUN_LIMIT
from core.tiles import CHANNEL_ORDERS

logger = logging.getLogger(__name__)

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


class ConfigError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class DebuggerConfig:
    run_limit: int = DEFAULT_RUN_LIMIT
    palette_order: str = "bgr"
    log_level: str = "INFO"


def default_config_path() -> Path:
    return Path(__file__).resolve().parent.parent / ".gba_debugger.json"


def _validate(data: object, path: Path) -> DebuggerConfig:
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: config must be a JSON object.")
    defaults = DebuggerConfig()

    run_limit = data.get("run_limit", defaults.run_limit)
    if not isinstance(run_limit, int) or isinstance(run_limit, bool) or run_limit <= 0:
        raise ConfigError(f"{path}: run_limit must be a positive integer.")

    palette_order = data.get("palette_order", defaults.palette_order)
    if palette_order not in CHANNEL_ORDERS:
        raise ConfigError(f"{path}: palette_order must be one of: {', '.join(sorted(CHANNEL_ORDERS))}.")

    log_level = data.get("log_level", defaults.log_level)
    if not isinstance(log_level, str) or log_level.upper() not in LOG_LEVELS:
        raise ConfigError(f"{path}: log_level must be one of: {', '.join(sorted(LOG_LEVELS))}.")

    return DebuggerConfig(run_limit=run_limit, palette_order=palette_order, log_level=log_level.upper())


def load_config(path: Optional[Path | str] = None) -> DebuggerConfig:
    resolved = Path(path).expanduser() if path else default_config_path()
    if not resolved.exists():
        logger.debug("No config at %s, using defaults", resolved)
        return DebuggerConfig()
    try:
        data = json.loads(resolved.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {resolved}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config: {exc}") from exc
    return _validate(data, resolved)
