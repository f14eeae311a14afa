"""
Console helpers for compilercover: a stream tee with per-file noise filtering.
"""

from __future__ import annotations

from pathlib import Path
from typing import TextIO


class TeeLogger:
    """
    A file-like object that writes to another stream (usually the original
    stdout) and, if a path is given, to a log file, flushing after every write.

    When verbose is False, per-file progress lines are dropped from both
    outputs; summaries and errors always get through.
    """

    _QUIET_SUPPRESS_PREFIXES: tuple[str, ...] = (
        "[*] Instrumenting",
        "[+] Importing package",
    )

    def __init__(
        self,
        file_path: str | Path | None,
        original_stream: TextIO,
        verbose: bool = True,
    ) -> None:
        """Initialize the logger.

        Args:
            file_path: Log file to append to, or None for console only.
            original_stream: The stream to tee to (e.g. sys.stdout).
            verbose: If False, suppress per-file progress lines.
        """
        self.original_stream = original_stream
        self.log_file = open(file_path, "a", encoding="utf-8") if file_path else None
        self.verbose = verbose
        # print() sends the text and its trailing "\n" as two writes.
        self._last_was_suppressed = False

    def _is_suppressed(self, message: str) -> bool:
        if self.verbose:
            return False
        return message.lstrip().startswith(self._QUIET_SUPPRESS_PREFIXES)

    def write(self, message: str) -> None:
        if message == "\n" and self._last_was_suppressed:
            self._last_was_suppressed = False
            return
        if self._is_suppressed(message):
            self._last_was_suppressed = True
            return
        self._last_was_suppressed = False
        self.original_stream.write(message)
        if self.log_file is not None:
            self.log_file.write(message)
        self.flush()

    def flush(self) -> None:
        self.original_stream.flush()
        if self.log_file is not None:
            self.log_file.flush()

    def close(self) -> None:
        """Flush and close the log file; the original stream stays open."""
        self.flush()
        if self.log_file is not None:
            self.log_file.close()

    @property
    def encoding(self) -> str:
        return getattr(self.original_stream, "encoding", "utf-8")

    def isatty(self) -> bool:
        return hasattr(self.original_stream, "isatty") and self.original_stream.isatty()
