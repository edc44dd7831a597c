"""Line-oriented filtering of log output."""

from __future__ import annotations

import re
from typing import BinaryIO

_LINE_SPLIT = re.compile(b"(?<=\n)")


class LogFilter:
    """Writable object forwarding complete lines to ``writer``.

    The last piece of the accumulated data is held back until more data
    arrives, so that partial lines are never written.
    """

    def __init__(self, writer: BinaryIO) -> None:
        self.writer = writer
        self._buffer = b""

    def should_write(self, line: bytes) -> bool:
        """Decide whether a line is forwarded; every non-empty line is."""
        return bool(line)

    def write(self, data: bytes) -> int:
        """Accept ``data`` and forward every line that is followed by another."""
        self._buffer += bytes(data)
        lines = [line for line in _LINE_SPLIT.split(self._buffer) if line]
        if lines:
            *complete, self._buffer = lines
            for line in complete:
                if self.should_write(line):
                    self.writer.write(line)
        return len(data)

    def flush(self) -> None:
        """Flush the underlying writer."""
        self.writer.flush()