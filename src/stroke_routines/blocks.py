"""Predefined blocks — a catalog of safe host commands for building routines.

Blocks are grouped by category so a configuration UI can offer them as a
palette instead of asking for raw command ids.
"""

from __future__ import annotations

from dataclasses import dataclass

from stroke_routines.commands import Command

CATEGORIES = ("files", "focus", "appearance", "terminal", "git")


@dataclass(frozen=True)
class Block:
    id: str
    label: str
    command: str
    category: str

    def to_command(self) -> Command:
        return Command.host(self.command, label=self.label)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "command": self.command,
            "category": self.category,
        }


PREDEFINED_BLOCKS: tuple[Block, ...] = (
    # Files
    Block("save", "Save", "workbench.action.files.save", "files"),
    Block("saveAll", "Save All", "workbench.action.files.saveAll", "files"),
    Block("format", "Format Document", "editor.action.formatDocument", "files"),
    Block("closeEditor", "Close Editor", "workbench.action.closeActiveEditor", "files"),
    Block("closeAll", "Close All Editors", "workbench.action.closeAllEditors", "files"),
    # Focus
    Block("zenMode", "Zen Mode (Toggle)", "workbench.action.toggleZenMode", "focus"),
    Block("exitZenMode", "Exit Zen Mode", "workbench.action.exitZenMode", "focus"),
    Block("toggleSidebar", "Toggle Sidebar", "workbench.action.toggleSidebarVisibility", "focus"),
    Block("togglePanel", "Toggle Panel", "workbench.action.togglePanel", "focus"),
    Block("fullScreen", "Full Screen", "workbench.action.toggleFullScreen", "focus"),
    Block("toggleMinimap", "Toggle Minimap", "editor.action.toggleMinimap", "focus"),
    # Appearance
    Block("changeTheme", "Change Theme", "workbench.action.selectTheme", "appearance"),
    Block("zoomIn", "Increase Font Size", "editor.action.fontZoomIn", "appearance"),
    Block("zoomOut", "Decrease Font Size", "editor.action.fontZoomOut", "appearance"),
    Block("zoomReset", "Reset Font Size", "editor.action.fontZoomReset", "appearance"),
    # Terminal
    Block("newTerminal", "New Terminal", "workbench.action.terminal.new", "terminal"),
    Block("toggleTerminal", "Toggle Terminal", "workbench.action.terminal.toggleTerminal", "terminal"),
    Block("clearTerminal", "Clear Terminal", "workbench.action.terminal.clear", "terminal"),
    # Git
    Block("gitCommit", "Git Commit", "git.commit", "git"),
    Block("gitPush", "Git Push", "git.push", "git"),
    Block("gitPull", "Git Pull", "git.pull", "git"),
    Block("gitStash", "Git Stash", "git.stash", "git"),
    Block("gitStashPop", "Git Stash Pop", "git.stashPop", "git"),
)


def get_block(block_id: str) -> Block | None:
    for block in PREDEFINED_BLOCKS:
        if block.id == block_id:
            return block
    return None


def blocks_by_category() -> dict[str, list[Block]]:
    """Blocks grouped by category, in catalog order."""
    grouped: dict[str, list[Block]] = {c: [] for c in CATEGORIES}
    for block in PREDEFINED_BLOCKS:
        grouped[block.category].append(block)
    return grouped
