"""Routine storage — the single owner of routine definitions.

The store validates routines on save, stamps timestamps, writes through to
a persistence collaborator and tells subscribers (the recognizer's
normalization cache) that samples may have changed.

Records are immutable; every update swaps in a new ``Routine`` so readers
see either the old or the new record, never a half-updated one.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

import yaml

from stroke_routines.commands import Command
from stroke_routines.geometry import Stroke
from stroke_routines.recognizer import MIN_POINTS

logger = logging.getLogger("stroke_routines.store")


class ValidationError(ValueError):
    """A routine failed structural validation and was not saved."""


@dataclass(frozen=True)
class Routine:
    """A named binding of gesture samples to an ordered command list."""
    name: str
    commands: tuple[Command, ...] = ()
    samples: tuple[Stroke, ...] = ()
    enabled: Optional[bool] = None  # unset counts as enabled
    delay_ms: int = 0
    created_at: Optional[float] = None
    updated_at: Optional[float] = None

    def __post_init__(self):
        # Accept lists and raw records; store tuples of typed values
        object.__setattr__(self, "commands", tuple(Command.from_record(c) for c in self.commands))
        object.__setattr__(self, "samples", tuple(Stroke.coerce(s) for s in self.samples))

    @property
    def is_enabled(self) -> bool:
        return self.enabled is not False

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "commands": [c.to_dict() for c in self.commands],
            "samples": [s.to_list() for s in self.samples],
            "enabled": self.is_enabled,
            "delay_ms": self.delay_ms,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Routine:
        """Load a routine record, accepting the legacy field names."""
        delay = data.get("delay_ms", data.get("delay", 0)) or 0
        return cls(
            name=data["name"],
            commands=tuple(data.get("commands", [])),
            samples=tuple(data.get("samples", [])),
            enabled=data.get("enabled"),
            delay_ms=int(delay),
            created_at=_timestamp(data.get("created_at", data.get("createdAt"))),
            updated_at=_timestamp(data.get("updated_at", data.get("updatedAt"))),
        )


def _timestamp(value) -> Optional[float]:
    """Normalize stored timestamps to seconds; older records used milliseconds."""
    if value is None:
        return None
    value = float(value)
    if value > 1e11:
        value /= 1000.0
    return value


# --- Persistence collaborators ---

class RoutinePersistence(Protocol):
    def load(self) -> dict[str, Routine]: ...

    def save(self, routines: dict[str, Routine]) -> None: ...


class MemoryPersistence:
    """Keeps routines in a dict. Useful for tests and throwaway sessions."""

    def __init__(self, routines: Optional[dict[str, Routine]] = None):
        self.data: dict[str, Routine] = dict(routines or {})
        self.save_count = 0

    def load(self) -> dict[str, Routine]:
        return dict(self.data)

    def save(self, routines: dict[str, Routine]) -> None:
        self.data = dict(routines)
        self.save_count += 1


class YamlPersistence:
    """Stores routines in a YAML file: ``{"routines": [routine, ...]}``."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> dict[str, Routine]:
        if not self.path.exists():
            return {}

        with open(self.path) as f:
            data = yaml.safe_load(f) or {}

        routines: dict[str, Routine] = {}
        for entry in data.get("routines", []):
            routine = Routine.from_dict(entry)
            routines[routine.name] = routine
        logger.info("Loaded %d routines from %s", len(routines), self.path)
        return routines

    def save(self, routines: dict[str, Routine]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        entries = [r.to_dict() for r in routines.values()]
        with open(self.path, "w") as f:
            yaml.dump({"routines": entries}, f, default_flow_style=False, sort_keys=False)
        logger.debug("Saved %d routines to %s", len(entries), self.path)


# --- Store ---

class RoutineStore:
    """CRUD over routines with persistence write-through.

    Usage:
        store = RoutineStore(YamlPersistence("routines.yml"))
        store.subscribe(cache.invalidate)
        store.save_routine(Routine(name="Focus", commands=[...], samples=[...]))
    """

    def __init__(
        self,
        persistence: Optional[RoutinePersistence] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._persistence = persistence if persistence is not None else MemoryPersistence()
        self._clock = clock
        self._routines: dict[str, Routine] = dict(self._persistence.load())
        self._listeners: list[Callable[[str], None]] = []

    def subscribe(self, callback: Callable[[str], None]):
        """Register a callback invoked with the routine name after each mutation."""
        self._listeners.append(callback)

    def _commit(self, name: str):
        self._persistence.save(dict(self._routines))
        for callback in self._listeners:
            callback(name)

    def save_routine(self, routine: Routine) -> Routine:
        """Create or replace a routine. Raises ValidationError on bad structure."""
        name = (routine.name or "").strip()
        if not name:
            raise ValidationError("Routine name must not be empty")
        if not routine.commands:
            raise ValidationError(f"Routine {name!r} needs at least one command")
        if not routine.samples:
            raise ValidationError(f"Routine {name!r} needs at least one gesture sample")
        for i, sample in enumerate(routine.samples):
            if len(sample) < MIN_POINTS:
                raise ValidationError(
                    f"Routine {name!r} sample {i + 1} is too short "
                    f"({len(sample)} points, min {MIN_POINTS})"
                )
        if routine.delay_ms < 0:
            raise ValidationError(f"Routine {name!r} has a negative delay")

        now = self._clock()
        existing = self._routines.get(name)
        stored = dataclasses.replace(
            routine,
            name=name,
            enabled=True if routine.enabled is None else routine.enabled,
            created_at=existing.created_at if existing and existing.created_at else now,
            updated_at=now,
        )

        self._routines[name] = stored
        logger.info(
            "Saved routine %r (%d commands, %d samples)",
            name, len(stored.commands), len(stored.samples),
        )
        self._commit(name)
        return stored

    def delete(self, name: str) -> bool:
        if name not in self._routines:
            return False
        del self._routines[name]
        logger.info("Deleted routine %r", name)
        self._commit(name)
        return True

    def toggle(self, name: str) -> bool:
        routine = self._routines.get(name)
        if routine is None:
            return False
        self._routines[name] = dataclasses.replace(
            routine,
            enabled=not routine.is_enabled,
            updated_at=self._clock(),
        )
        logger.info("Routine %r %s", name, "enabled" if not routine.is_enabled else "disabled")
        self._commit(name)
        return True

    def get(self, name: str) -> Optional[Routine]:
        return self._routines.get(name)

    def exists(self, name: str) -> bool:
        return name in self._routines

    def get_all(self) -> dict[str, Routine]:
        return dict(self._routines)

    def get_enabled(self) -> dict[str, Routine]:
        return {name: r for name, r in self._routines.items() if r.is_enabled}

    def get_all_gestures(self) -> dict[str, tuple[Stroke, ...]]:
        """Samples of every routine that has any, for registration checks."""
        return {name: r.samples for name, r in self._routines.items() if r.samples}

    @property
    def names(self) -> list[str]:
        return list(self._routines.keys())

    def __len__(self) -> int:
        return len(self._routines)

    def __contains__(self, name: str) -> bool:
        return name in self._routines
