"""Stroke routines configuration management."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from stroke_routines.engine import RECOGNITION_THRESHOLD
from stroke_routines.session import RECOGNITION_TIMEOUT
from stroke_routines.validator import SIMILARITY_THRESHOLD

logger = logging.getLogger("stroke_routines.config")

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "stroke-routines" / "config.json"
DEFAULT_ROUTINES_FILE = Path.home() / ".config" / "stroke-routines" / "routines.yml"


@dataclass
class EngineConfig:
    host: str = "127.0.0.1"
    port: int = 8765
    routines_file: str = str(DEFAULT_ROUTINES_FILE)
    recognition_threshold: float = RECOGNITION_THRESHOLD
    similarity_threshold: float = SIMILARITY_THRESHOLD
    recognition_timeout: float = RECOGNITION_TIMEOUT
    shell_timeout: float = 60.0
    log_level: str = "info"

    def validate(self) -> EngineConfig:
        """Raise ValueError unless registration is stricter than recognition."""
        if not 0.0 < self.recognition_threshold <= 1.0:
            raise ValueError(f"recognition_threshold out of range: {self.recognition_threshold}")
        if self.similarity_threshold >= self.recognition_threshold:
            raise ValueError(
                "similarity_threshold must be below recognition_threshold "
                f"({self.similarity_threshold} >= {self.recognition_threshold})"
            )
        if self.recognition_timeout <= 0:
            raise ValueError("recognition_timeout must be positive")
        return self


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> EngineConfig:
    """Load config from JSON, ignoring unknown keys. Missing file gives defaults."""
    path = Path(path)
    if not path.exists():
        return EngineConfig()

    data = json.loads(path.read_text())
    known = {f.name for f in fields(EngineConfig)}
    ignored = sorted(set(data) - known)
    if ignored:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(ignored))
    return EngineConfig(**{k: v for k, v in data.items() if k in known}).validate()


def save_config(config: EngineConfig, path: str | Path = DEFAULT_CONFIG_PATH):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(config), indent=2))
