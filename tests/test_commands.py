"""Tests for routine steps and legacy record migration."""

import pytest

from stroke_routines.commands import Command, CommandType


class TestCommand:
    def test_constructors(self):
        assert Command.host("files.save").type == CommandType.HOST
        assert Command.shell("ls -la").type == CommandType.SHELL
        delay = Command.delay(250)
        assert delay.type == CommandType.DELAY
        assert delay.payload == "250"
        assert delay.delay_ms == 250

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            Command.delay(-1)

    def test_malformed_delay_payload_waits_zero(self):
        assert Command(CommandType.DELAY, "soon").delay_ms == 0
        assert Command(CommandType.DELAY, "-20").delay_ms == 0

    def test_display_label_falls_back_to_payload(self):
        assert Command.host("files.save").display_label == "files.save"
        assert Command.host("files.save", label="Save").display_label == "Save"

    def test_roundtrip(self):
        command = Command.shell("make test", label="Tests")
        assert Command.from_record(command.to_dict()) == command


class TestLegacyRecords:
    def test_plain_string_is_host_command(self):
        command = Command.from_record("workbench.action.files.saveAll")
        assert command == Command(CommandType.HOST, "workbench.action.files.saveAll", "")

    def test_legacy_type_tags(self):
        host = Command.from_record({"type": "vscode-command", "command": "editor.action.formatDocument"})
        shell = Command.from_record({"type": "terminal-command", "command": "npm test", "label": "Test"})
        delay = Command.from_record({"type": "delay", "command": "500"})
        assert host.type == CommandType.HOST
        assert host.payload == "editor.action.formatDocument"
        assert shell.type == CommandType.SHELL
        assert shell.label == "Test"
        assert delay.type == CommandType.DELAY
        assert delay.delay_ms == 500

    def test_missing_type_defaults_to_host(self):
        assert Command.from_record({"payload": "git.push"}).type == CommandType.HOST

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown command type"):
            Command.from_record({"type": "macro", "payload": "x"})

    def test_missing_payload(self):
        with pytest.raises(ValueError, match="no payload"):
            Command.from_record({"type": "host-command"})

    def test_unsupported_record(self):
        with pytest.raises(ValueError):
            Command.from_record(42)
