"""Memory Window: bounded rolling summary of recent turns.

The full history log of a scene grows without limit, so oracle prompts only
ever see a trailing slice of it.  The Memory Window complements that slice
with one compact summary line per recent turn, which survives longer than
raw history truncation would allow.  It is a lossy compression of context,
never a substitute for the history log.
"""

from __future__ import annotations

from collections import deque

MEMORY_HEADER = "--- RECENT EVENTS (Memory) ---"


class MemoryWindow:
    """FIFO window of turn summaries with a fixed capacity."""

    def __init__(self, capacity: int = 5, entries: list[str] | None = None) -> None:
        if capacity <= 0:
            raise ValueError("MemoryWindow capacity must be positive.")
        self._capacity = capacity
        self._entries: deque[str] = deque(entries or [], maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, summary: str) -> None:
        """Append a summary, evicting the oldest entry when full."""
        self._entries.append(summary)

    def render(self) -> str:
        """Render the window as a single prompt block.

        An empty window renders as the empty string so the oracle never sees
        a placeholder it could mistake for an event.
        """
        if not self._entries:
            return ""
        return "\n".join([MEMORY_HEADER, *self._entries])

    def entries(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
