"""Editable command line with slash-command menu and history recall."""

from __future__ import annotations

from typing import Optional

from xiangqi_tui.service.command import SlashCommand

_ASCII_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)


class InputState:
    """Text buffer with a cursor, a slash menu pick and command history."""

    def __init__(self) -> None:
        self._buffer = ""
        self._cursor = 0
        self._slash_pick: Optional[int] = None
        self._history: list[str] = []
        # ``len(history)`` means the live line rather than a history entry.
        self._history_index = 0
        self._history_draft: Optional[str] = None

    @property
    def text(self) -> str:
        return self._buffer

    @property
    def cursor(self) -> int:
        """Cursor position in characters."""
        return self._cursor

    @property
    def command_history(self) -> list[str]:
        return list(self._history)

    def slash_menu_open(self) -> bool:
        return self._buffer.startswith("/") and bool(self.suggestions())

    def slash_pick_index(self) -> int:
        return self._slash_pick if self._slash_pick is not None else 0

    def selected_slash_command(self) -> Optional[SlashCommand]:
        suggestions = self.suggestions()
        idx = self.slash_pick_index()
        return suggestions[idx] if idx < len(suggestions) else None

    def set_text(self, text: str) -> None:
        self._buffer = text
        self._cursor = len(text)
        self._sync_slash_pick()

    def clear(self) -> None:
        self._buffer = ""
        self._cursor = 0
        self._slash_pick = None
        self._history_index = len(self._history)
        self._history_draft = None

    def take_text(self) -> str:
        """Return the buffer and clear it."""
        text = self._buffer
        self.clear()
        return text

    def insert_char(self, ch: str) -> None:
        self._buffer = self._buffer[: self._cursor] + ch + self._buffer[self._cursor :]
        self._cursor += len(ch)
        self._sync_slash_pick()

    def backspace(self) -> None:
        if self._cursor == 0:
            return
        start = self._cursor - 1
        self._buffer = self._buffer[:start] + self._buffer[self._cursor :]
        self._cursor = start
        self._sync_slash_pick()

    def delete(self) -> None:
        if self._cursor >= len(self._buffer):
            return
        self._buffer = self._buffer[: self._cursor] + self._buffer[self._cursor + 1 :]
        self._sync_slash_pick()

    def commit_command_history(self, line: str) -> None:
        """Record a submitted line, skipping blanks and immediate repeats."""
        line = line.strip()
        if not line:
            return
        self._history_draft = None
        if not self._history or self._history[-1] != line:
            self._history.append(line)
        self._history_index = len(self._history)

    def history_prev(self) -> bool:
        if not self._history:
            return False
        if self._history_index == len(self._history):
            self._history_draft = self._buffer or None
            self._history_index = len(self._history) - 1
        elif self._history_index > 0:
            self._history_index -= 1
        else:
            return False
        self._load_history_entry()
        return True

    def history_next(self) -> bool:
        if not self._history or self._history_index >= len(self._history):
            return False
        self._history_index += 1
        if self._history_index >= len(self._history):
            self._restore_history_draft()
            return True
        self._load_history_entry()
        return True

    def move_left(self) -> None:
        if self._cursor > 0:
            self._cursor -= 1

    def move_right(self) -> None:
        if self._cursor < len(self._buffer):
            self._cursor += 1

    def move_home(self) -> None:
        self._cursor = 0

    def move_end(self) -> None:
        self._cursor = len(self._buffer)

    def suggestions(self) -> list[SlashCommand]:
        """Slash commands whose text starts with the buffer."""
        if not self._buffer.startswith("/"):
            return []
        keyword = self._buffer.translate(_ASCII_LOWER)
        return [command for command in SlashCommand if command.value.startswith(keyword)]

    def move_slash_pick(self, delta: int) -> None:
        suggestions = self.suggestions()
        if not suggestions:
            self._slash_pick = None
            return
        self._slash_pick = (self.slash_pick_index() + delta) % len(suggestions)

    def apply_slash_pick_to_buffer(self) -> None:
        command = self.selected_slash_command()
        if command is None:
            return
        self._buffer = command.value
        self._cursor = len(self._buffer)
        self._sync_slash_pick()

    def try_slash_complete(self) -> bool:
        """Complete the picked slash command; False when nothing matches."""
        if not self._buffer.startswith("/") or not self.suggestions():
            return False
        self.apply_slash_pick_to_buffer()
        return True

    def _restore_history_draft(self) -> None:
        self._history_index = len(self._history)
        self._buffer = self._history_draft or ""
        self._history_draft = None
        self._cursor = len(self._buffer)
        self._sync_slash_pick()

    def _load_history_entry(self) -> None:
        if 0 <= self._history_index < len(self._history):
            self._buffer = self._history[self._history_index]
            self._cursor = len(self._buffer)
            self._sync_slash_pick()

    def _sync_slash_pick(self) -> None:
        if not self._buffer.startswith("/"):
            self._slash_pick = None
            return
        suggestions = self.suggestions()
        if not suggestions:
            self._slash_pick = None
            return
        self._slash_pick = min(self.slash_pick_index(), len(suggestions) - 1)