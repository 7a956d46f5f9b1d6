"""Time-ordered string IDs for orders and payment references.

Order ids sort in arrival order, so (created_at, id) is a total FIFO order
even when two placements share a timestamp.

Layout (63 bits): 41 bits ms since _EPOCH_MS | 10 bits node | 12 bits sequence.
"""

import threading
import time

from config.settings import settings


class SnowflakeIdGenerator:
    _EPOCH_MS = 1_704_067_200_000  # 2024-01-01T00:00:00Z
    _NODE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, node_id: int = 0) -> None:
        if not (0 <= node_id < (1 << self._NODE_BITS)):
            raise ValueError(f"node_id must be 0-{(1 << self._NODE_BITS) - 1}")
        self._node_id = node_id
        self._sequence = 0
        self._last_ms = -1
        self._lock = threading.Lock()

    def next_int(self) -> int:
        with self._lock:
            now = self._now_ms()
            if now < self._last_ms:
                # Clock stepped back: keep issuing from the last seen millisecond
                now = self._last_ms
            if now == self._last_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    now = self._spin_until_after(now)
            else:
                self._sequence = 0
            self._last_ms = now
            return (
                ((now - self._EPOCH_MS) << (self._NODE_BITS + self._SEQUENCE_BITS))
                | (self._node_id << self._SEQUENCE_BITS)
                | self._sequence
            )

    def next_id(self) -> str:
        # Zero-padded so lexicographic order equals numeric order
        return f"{self.next_int():019d}"

    @staticmethod
    def _now_ms() -> int:
        return time.time_ns() // 1_000_000

    def _spin_until_after(self, last_ms: int) -> int:
        now = self._now_ms()
        while now <= last_ms:
            now = self._now_ms()
        return now


_default_generator = SnowflakeIdGenerator(settings.NODE_ID)


def generate_id() -> str:
    return _default_generator.next_id()


def generate_reference(prefix: str) -> str:
    """Provider-facing reference, e.g. 'WDR-0001234567890123456'."""
    return f"{prefix}-{_default_generator.next_id()}"
