"""Parsing of the command line: coordinate moves and slash commands."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional, Union

_MOVE_RE = re.compile(r"[a-i][0-9][a-i][0-9]")
_WHITESPACE_RE = re.compile(r"\s")
_ASCII_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)


def _ascii_lower(text: str) -> str:
    return text.translate(_ASCII_LOWER)


class SlashCommand(enum.Enum):
    """Commands typed after a leading ``/``; the value is the command text."""

    NEW = "/new"
    UNDO = "/undo"
    PREV = "/prev"
    NEXT = "/next"
    RED_AI = "/rai"
    BLACK_AI = "/bai"
    QUERY = "/query"
    ROTATE = "/rotate"
    EVAL = "/eval"
    COPY_FEN = "/copyfen"
    PASTE_FEN = "/pastefen"
    STOP = "/stop"
    HELP = "/help"
    EXIT = "/exit"
    QUIT = "/quit"

    @property
    def command(self) -> str:
        """The command as typed, e.g. ``/new``."""
        return self.value

    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @classmethod
    def from_name(cls, value: str) -> Optional["SlashCommand"]:
        """The command whose text is exactly ``value``, or None."""
        for command in cls:
            if command.value == value:
                return command
        return None


_DESCRIPTIONS = {
    SlashCommand.NEW: "停止并开新棋",
    SlashCommand.UNDO: "悔棋",
    SlashCommand.PREV: "上一步",
    SlashCommand.NEXT: "下一步",
    SlashCommand.RED_AI: "切换红AI",
    SlashCommand.BLACK_AI: "切换黑AI",
    SlashCommand.QUERY: "切换查询模式",
    SlashCommand.ROTATE: "旋转棋盘",
    SlashCommand.EVAL: "切换实时评估",
    SlashCommand.COPY_FEN: "复制 FEN 到剪贴板",
    SlashCommand.PASTE_FEN: "粘贴 FEN",
    SlashCommand.STOP: "停止模式、引擎流与自动走子",
    SlashCommand.HELP: "操作说明",
    SlashCommand.EXIT: "退出软件",
    SlashCommand.QUIT: "退出软件",
}


@dataclass(frozen=True)
class CoordinateMove:
    """A move written as ``[a-i][0-9][a-i][0-9]``."""

    raw: str
    from_file: int
    from_rank: int
    to_file: int
    to_rank: int


@dataclass(frozen=True)
class PasteFen:
    """``/pastefen`` followed by a FEN, kept as typed (spaces included)."""

    fen: str


ParsedCommand = Union[CoordinateMove, SlashCommand, PasteFen]


class CommandParseError(ValueError):
    """Input that is neither a valid move nor a known command."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.message == other.message

    def __hash__(self) -> int:
        return hash((type(self), self.message))


class EmptyInput(CommandParseError):
    def __init__(self) -> None:
        super().__init__("输入为空。")


class UnknownSlash(CommandParseError):
    def __init__(self, command: str) -> None:
        super().__init__(f"未知命令：{command}")
        self.command = command


class InvalidMove(CommandParseError):
    def __init__(self, value: str) -> None:
        super().__init__(
            f"非法输入：{value}。普通输入必须满足 [a-i][0-9][a-i][0-9]。"
        )
        self.value = value


class InvalidPasteFen(CommandParseError):
    def __init__(self) -> None:
        super().__init__("用法：/pastefen <FEN>（FEN 可含空格）。")


def parse_command(text: str) -> ParsedCommand:
    """Parse one input line; raise a CommandParseError subclass when invalid."""
    command = text.strip()
    if not command:
        raise EmptyInput()
    if command.startswith("/"):
        return _parse_slash_command(command)
    return _parse_coordinate_move(_ascii_lower(command))


def _parse_slash_command(text: str) -> ParsedCommand:
    rest = text.lstrip("/")
    pieces = _WHITESPACE_RE.split(rest, maxsplit=1)
    name_part = pieces[0]
    args = pieces[1].strip() if len(pieces) > 1 else ""
    name = "/" + _ascii_lower(name_part)
    if name == SlashCommand.PASTE_FEN.value:
        if not args:
            raise InvalidPasteFen()
        return PasteFen(args)
    command = SlashCommand.from_name(name)
    if command is None:
        raise UnknownSlash(text.strip())
    return command


def _parse_coordinate_move(value: str) -> CoordinateMove:
    if not _MOVE_RE.fullmatch(value):
        raise InvalidMove(value)
    return CoordinateMove(
        raw=value,
        from_file=ord(value[0]) - ord("a"),
        from_rank=int(value[1]),
        to_file=ord(value[2]) - ord("a"),
        to_rank=int(value[3]),
    )