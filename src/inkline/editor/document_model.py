"""In-memory line buffer and cursor used by the completion subsystem."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from typing import Protocol, Sequence, runtime_checkable


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


@runtime_checkable
class DocumentBuffer(Protocol):
    """Document collaborator consumed by the completion controller.

    The controller only reads lines and the cursor; ``apply_text`` is called
    exclusively when a preview is accepted.
    """

    def get_lines(self) -> Sequence[str]:  # pragma: no cover - protocol stub
        ...

    def get_cursor(self) -> tuple[int, int]:  # pragma: no cover - protocol stub
        ...

    def apply_text(self, text: str) -> None:  # pragma: no cover - protocol stub
        ...


@dataclass(slots=True)
class DocumentSnapshot:
    """Immutable copy of the buffer lines and cursor at one point in time."""

    lines: tuple[str, ...]
    row: int
    column: int
    version_id: int
    content_hash: str

    @property
    def cursor(self) -> tuple[int, int]:
        return (self.row, self.column)


@dataclass(slots=True)
class TextBuffer:
    """Line-oriented document with a single cursor.

    Rows and columns are zero based. The cursor is always clamped onto an
    existing position, so callers may pass out-of-range values.
    """

    lines: list[str] = field(default_factory=lambda: [""])
    row: int = 0
    column: int = 0
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version_id: int = 1
    dirty: bool = False

    def __post_init__(self) -> None:
        if not self.lines:
            self.lines = [""]
        self._clamp_cursor()

    @classmethod
    def from_text(cls, text: str, *, row: int | None = None, column: int | None = None) -> TextBuffer:
        """Build a buffer from ``text``; the cursor defaults to the end of the text."""

        lines = text.split("\n")
        target_row = len(lines) - 1 if row is None else row
        target_column = len(lines[min(max(target_row, 0), len(lines) - 1)]) if column is None else column
        return cls(lines=lines, row=target_row, column=target_column)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    @property
    def content_hash(self) -> str:
        return _hash_text(self.text)

    def get_lines(self) -> list[str]:
        return list(self.lines)

    def get_cursor(self) -> tuple[int, int]:
        return (self.row, self.column)

    def current_line(self) -> str:
        return self.lines[self.row]

    def snapshot(self) -> DocumentSnapshot:
        return DocumentSnapshot(
            lines=tuple(self.lines),
            row=self.row,
            column=self.column,
            version_id=self.version_id,
            content_hash=self.content_hash,
        )

    def move_cursor(self, row: int, column: int) -> tuple[int, int]:
        """Place the cursor, clamping it onto the document, and return it."""

        self.row = row
        self.column = column
        self._clamp_cursor()
        return self.get_cursor()

    def insert_text(self, text: str) -> tuple[int, int]:
        """Type ``text`` at the cursor and return the new cursor position."""

        return self.apply_text(text)

    def apply_text(self, text: str) -> tuple[int, int]:
        """Insert possibly multi-line ``text`` at the cursor.

        The cursor ends up directly after the inserted text. Carriage returns
        are normalized away so ``\\r\\n`` suggestions do not leave stray
        characters in the line.
        """

        if not text:
            return self.get_cursor()
        pieces = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        line = self.lines[self.row]
        prefix, suffix = line[: self.column], line[self.column :]
        if len(pieces) == 1:
            self.lines[self.row] = prefix + pieces[0] + suffix
            self.column = len(prefix) + len(pieces[0])
        else:
            new_lines = [prefix + pieces[0], *pieces[1:-1], pieces[-1] + suffix]
            self.lines[self.row : self.row + 1] = new_lines
            self.row += len(pieces) - 1
            self.column = len(pieces[-1])
        self._touch()
        return self.get_cursor()

    def delete_before_cursor(self, count: int = 1) -> tuple[int, int]:
        """Backspace ``count`` characters, joining lines at column 0."""

        for _ in range(max(0, count)):
            if self.column > 0:
                line = self.lines[self.row]
                self.lines[self.row] = line[: self.column - 1] + line[self.column :]
                self.column -= 1
            elif self.row > 0:
                previous = self.lines[self.row - 1]
                self.lines[self.row - 1 : self.row + 1] = [previous + self.lines[self.row]]
                self.row -= 1
                self.column = len(previous)
            else:
                break
            self._touch()
        return self.get_cursor()

    def _touch(self) -> None:
        self.dirty = True
        self.version_id += 1

    def _clamp_cursor(self) -> None:
        self.row = min(max(0, int(self.row)), len(self.lines) - 1)
        self.column = min(max(0, int(self.column)), len(self.lines[self.row]))


__all__ = ["DocumentBuffer", "DocumentSnapshot", "TextBuffer"]
