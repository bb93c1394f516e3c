"""Indented build log output."""

from __future__ import annotations

from typing import Any, TextIO

_INDENT = "  "


class _IndentedWriter:
    """File-like writer that indents every line it receives."""

    def __init__(self, stream: TextIO, level: int) -> None:
        self._stream = stream
        self._prefix = _INDENT * level
        self._at_line_start = True

    def write(self, text: str) -> int:
        for piece in text.splitlines(keepends=True):
            if self._at_line_start and piece.strip("\r\n"):
                self._stream.write(self._prefix)
            self._stream.write(piece)
            self._at_line_start = piece.endswith("\n")
        return len(text)

    def flush(self) -> None:
        flush = getattr(self._stream, "flush", None)
        if flush is not None:
            flush()


class Emitter:
    """Writes titled, indented progress messages to a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def _emit(self, level: int, message: str, args: tuple[Any, ...]) -> None:
        text = message % args if args else message
        prefix = _INDENT * level
        for line in text.splitlines() or [""]:
            self._stream.write(f"{prefix}{line}\n" if line else "\n")

    def title(self, message: str, *args: Any) -> None:
        self._emit(0, message, args)

    def process(self, message: str, *args: Any) -> None:
        self._emit(1, message, args)

    def subprocess(self, message: str, *args: Any) -> None:
        self._emit(2, message, args)

    def action(self, message: str, *args: Any) -> None:
        self._emit(3, message, args)

    def detail(self, message: str, *args: Any) -> None:
        self._emit(2, message, args)

    def blank_line(self) -> None:
        self._stream.write("\n")

    def generating_sbom(self, path: Any) -> None:
        self.process("Generating SBOM for %s", path)

    def formatting_sbom(self, *formats: str) -> None:
        self.process("Writing SBOM in the following format(s):")
        for media_type in formats:
            self.subprocess("%s", media_type)
        self.blank_line()

    def action_writer(self) -> _IndentedWriter:
        """Return a writer that indents command output at action level."""
        return _IndentedWriter(self._stream, 3)