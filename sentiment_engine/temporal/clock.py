"""
Logical Clock for Deterministic Replay
======================================

Injectable clock supplying "now" as integer epoch seconds.

GUARANTEES:
- Same call sequence + same tick sequence = identical engine state
- Never reads system time in replay or manual mode
- All ticks are logged so a live session can be replayed
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import List
import json
import time


class ClockExhausted(Exception):
    """Raised when replay clock runs out of ticks."""
    pass


@dataclass
class LogicalClock:
    """
    Injectable clock for deterministic execution.

    MODES:
    ======
    1. LIVE mode: reads system time (whole seconds), logs every tick
    2. REPLAY mode: returns a pre-recorded tick sequence
    3. MANUAL mode: returns a fixed time that only advance() moves
    """
    _ticks: List[int] = field(default_factory=list)
    _current_index: int = 0
    _mode: str = "live"
    _manual_time: int = 0

    def now(self) -> int:
        if self._mode == "live":
            current = int(time.time())
            self._ticks.append(current)
            self._current_index = len(self._ticks)
            return current
        if self._mode == "manual":
            self._ticks.append(self._manual_time)
            self._current_index = len(self._ticks)
            return self._manual_time
        if self._current_index >= len(self._ticks):
            raise ClockExhausted(
                f"Replay clock exhausted at index {self._current_index}. "
                f"Original execution had {len(self._ticks)} ticks."
            )
        tick = self._ticks[self._current_index]
        self._current_index += 1
        return tick

    def peek(self) -> int:
        """Current time without consuming or logging a tick."""
        if self._mode == "live":
            return int(time.time())
        if self._mode == "manual":
            return self._manual_time
        if self._current_index < len(self._ticks):
            return self._ticks[self._current_index]
        return self._ticks[-1] if self._ticks else 0

    def advance(self, seconds: int) -> int:
        """Move a manual clock forward."""
        if self._mode != "manual":
            raise ValueError(f"advance() requires a manual clock, not {self._mode}")
        self._manual_time += seconds
        return self._manual_time

    def tick_count(self) -> int:
        return self._current_index

    def is_live(self) -> bool:
        return self._mode == "live"

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def ticks(self) -> List[int]:
        return list(self._ticks)

    @classmethod
    def live(cls) -> 'LogicalClock':
        """Create clock in LIVE mode (uses system time)."""
        return cls(_mode="live")

    @classmethod
    def manual(cls, start: int) -> 'LogicalClock':
        return cls(_mode="manual", _manual_time=start)

    @classmethod
    def replay(cls, ticks: List[int]) -> 'LogicalClock':
        return cls(_ticks=[int(t) for t in ticks], _mode="replay")

    @classmethod
    def from_log(cls, tick_log_path: Path) -> 'LogicalClock':
        """
        Create clock in REPLAY mode from a log written by save_log().
        """
        with open(tick_log_path, 'r') as f:
            data = json.load(f)
        return cls.replay(data['ticks'])

    def save_log(self, tick_log_path: Path) -> None:
        tick_log_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'version': '1.0',
            'mode': self._mode,
            'tick_count': len(self._ticks),
            'start_time': self._ticks[0] if self._ticks else None,
            'end_time': self._ticks[-1] if self._ticks else None,
            'ticks': self._ticks
        }

        with open(tick_log_path, 'w') as f:
            json.dump(data, f, indent=2)

    def __repr__(self) -> str:
        return f"LogicalClock({self._mode.upper()}, ticks={len(self._ticks)}, index={self._current_index})"

