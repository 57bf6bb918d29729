"""Routine steps — host commands, shell commands and delays.

Stored routines written by older versions keep commands either as plain
host-command strings or as ``{type, command, label}`` records with the
``vscode-command`` / ``terminal-command`` tags. ``Command.from_record``
converts all of those once, when routines are loaded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger("stroke_routines.commands")


class CommandType(Enum):
    HOST = "host-command"
    SHELL = "shell-command"
    DELAY = "delay"


_LEGACY_TYPES = {
    "vscode-command": CommandType.HOST,
    "terminal-command": CommandType.SHELL,
}


@dataclass(frozen=True)
class Command:
    """A single routine step.

    ``payload`` is a host command id for HOST, a command line for SHELL and
    a millisecond count (as a string) for DELAY.
    """
    type: CommandType
    payload: str
    label: str = ""

    @property
    def display_label(self) -> str:
        return self.label or self.payload

    @property
    def delay_ms(self) -> int:
        """Milliseconds to wait for a DELAY step; malformed payloads wait 0 ms."""
        try:
            ms = int(str(self.payload).strip())
        except ValueError:
            logger.warning("Invalid delay payload %r, using 0 ms", self.payload)
            return 0
        if ms < 0:
            logger.warning("Negative delay payload %r, using 0 ms", self.payload)
            return 0
        return ms

    @classmethod
    def host(cls, command_id: str, label: str = "") -> Command:
        return cls(CommandType.HOST, command_id, label)

    @classmethod
    def shell(cls, command_line: str, label: str = "") -> Command:
        return cls(CommandType.SHELL, command_line, label)

    @classmethod
    def delay(cls, ms: int, label: str = "") -> Command:
        if ms < 0:
            raise ValueError(f"Delay must be non-negative, got {ms}")
        return cls(CommandType.DELAY, str(int(ms)), label or f"Wait {int(ms)} ms")

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "payload": self.payload,
            "label": self.label,
        }

    @classmethod
    def from_record(cls, record: Any) -> Command:
        """Build a command from a stored record, migrating legacy shapes."""
        if isinstance(record, Command):
            return record
        if isinstance(record, str):
            return cls.host(record)
        if not isinstance(record, dict):
            raise ValueError(f"Unsupported command record: {record!r}")

        raw_type = record.get("type", CommandType.HOST.value)
        if raw_type in _LEGACY_TYPES:
            command_type = _LEGACY_TYPES[raw_type]
        else:
            try:
                command_type = CommandType(raw_type)
            except ValueError:
                raise ValueError(f"Unknown command type: {raw_type!r}") from None

        payload = record.get("payload", record.get("command"))
        if payload is None or str(payload) == "":
            raise ValueError(f"Command record has no payload: {record!r}")

        return cls(
            type=command_type,
            payload=str(payload),
            label=record.get("label") or "",
        )
