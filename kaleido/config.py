"""Kaleido Configuration — project-level .kaleidorc.json support.

Loads configuration from .kaleidorc.json (or kaleido.config.json) found in
the working directory or any parent. Lets a project configure:
  - the REPL prompt
  - extra or changed binary operator precedences
  - the LLVM module name
  - whether generated IR is printed and verified
  - the log level

Example .kaleidorc.json:
    {
      "prompt": "ready> ",
      "precedence": {"<": 10, "+": 20, "-": 20, "*": 40},
      "module_name": "my cool jit",
      "emit_ir": true,
      "verify": true,
      "log_level": "WARNING"
    }

Precedences are fixed once the parser is built; they cannot change during a
session.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class KaleidoConfig:
    """Session-level Kaleido configuration."""
    prompt: str = "ready> "
    # Operator -> precedence, merged over the built-in table
    precedence: Dict[str, int] = field(default_factory=dict)
    module_name: str = "kaleido"
    emit_ir: bool = True
    verify: bool = True
    log_level: str = "WARNING"


# ---------------------------------------------------------------------------
# Config file names (in priority order)
# ---------------------------------------------------------------------------

_CONFIG_FILES = [
    ".kaleidorc.json",
    "kaleido.config.json",
]

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Characters the grammar already gives a meaning to
_RESERVED = "(),;#."


def _ancestors(start_dir: str):
    """Yield start_dir (absolute) and each parent up to the filesystem root."""
    directory = os.path.abspath(start_dir)
    yield directory
    while os.path.dirname(directory) != directory:
        directory = os.path.dirname(directory)
        yield directory


def find_config(start_dir: str = ".") -> Optional[str]:
    """Return the nearest .kaleidorc.json / kaleido.config.json at or above start_dir."""
    for directory in _ancestors(start_dir):
        candidates = (os.path.join(directory, name) for name in _CONFIG_FILES)
        found = next((p for p in candidates if os.path.isfile(p)), None)
        if found is not None:
            logger.debug("using config %s", found)
            return found
    return None


def load_config(path: Optional[str] = None, start_dir: str = ".") -> KaleidoConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    If no config file is found, or it cannot be read, returns defaults.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return KaleidoConfig()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (IOError, OSError, json.JSONDecodeError) as e:
        logger.warning("ignoring config %s: %s", path, e)
        return KaleidoConfig()

    if not isinstance(data, dict):
        logger.warning("ignoring config %s: top level is not an object", path)
        return KaleidoConfig()

    logger.debug("loaded config from %s", path)
    return _dict_to_config(data)


def _dict_to_config(data: Dict[str, Any]) -> KaleidoConfig:
    """Convert a parsed dict to KaleidoConfig, skipping invalid entries."""
    config = KaleidoConfig()

    if "prompt" in data:
        config.prompt = str(data["prompt"])
    if "precedence" in data and isinstance(data["precedence"], dict):
        config.precedence = _precedence_overrides(data["precedence"])
    if "module_name" in data:
        config.module_name = str(data["module_name"])
    if "emit_ir" in data:
        config.emit_ir = bool(data["emit_ir"])
    if "verify" in data:
        config.verify = bool(data["verify"])
    if "log_level" in data:
        level = str(data["log_level"]).upper()
        if level in _LOG_LEVELS:
            config.log_level = level
        else:
            logger.warning("unknown log_level %r in config", data["log_level"])

    return config


def _precedence_overrides(raw: Dict[str, Any]) -> Dict[str, int]:
    table: Dict[str, int] = {}
    for op, prec in raw.items():
        if not isinstance(op, str) or len(op) != 1 or op.isalnum() or op.isspace() or op in _RESERVED:
            logger.warning("skipping precedence for %r: operators are single symbols", op)
            continue
        if isinstance(prec, bool) or not isinstance(prec, int):
            logger.warning("skipping precedence for %r: %r is not an integer", op, prec)
            continue
        table[op] = prec
    return table
