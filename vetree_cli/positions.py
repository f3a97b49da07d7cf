"""Offset to line/column conversion for one source buffer."""

from __future__ import annotations

from bisect import bisect_right
from typing import List, Optional

from .models import SourceLocation, SourcePosition


class LineIndex:
    """Line-start table for a single text, built once per file parse.

    Offsets are looked up by binary search, so converting many locations
    in a large file stays cheap. An instance belongs to exactly one buffer;
    build a new one for every file instead of sharing across texts.
    """

    def __init__(self, text: str) -> None:
        self._length = len(text)
        starts: List[int] = [0]
        index = text.find("\n")
        while index != -1:
            starts.append(index + 1)
            index = text.find("\n", index + 1)
        self._starts = starts

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def position(self, offset: int) -> SourcePosition:
        offset = max(0, min(offset, self._length))
        line = bisect_right(self._starts, offset) - 1
        return SourcePosition(line=line, column=offset - self._starts[line])

    def location(self, file_path: str, start: int, end: Optional[int] = None) -> SourceLocation:
        start_pos = self.position(start)
        end_pos = self.position(end) if end is not None else start_pos
        return SourceLocation(file_path=file_path, start=start_pos, end=end_pos)
