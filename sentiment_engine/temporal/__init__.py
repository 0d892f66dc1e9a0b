"""
Temporal Layer
==============

Deterministic time and the append-only call journal.

INVARIANTS:
- All time reads go through an injectable LogicalClock
- Every committed mutating call is journaled, in commit order
- Same journal -> same engine state (see replay.ReplayEngine)

Modules:
- clock: live / manual / replay clock
- journal: hash-chained call journal
- replay: journal re-execution and divergence detection. It builds whole
  engines, so it depends on the facade and is not re-exported here: import
  it by path (sentiment_engine.temporal.replay) or as
  sentiment_engine.ReplayEngine
"""

from .clock import ClockExhausted, LogicalClock
from .journal import CallJournal, JournalState

__all__ = [
    'ClockExhausted',
    'LogicalClock',
    'CallJournal',
    'JournalState',
]
