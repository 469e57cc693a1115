"""Wall-clock timers for turns and phase timeouts.

Both classes are pure query objects: nothing here sleeps, ticks or calls
back. Whoever owns the room polls ``remaining()`` / ``has_elapsed()`` and
acts on the answer, which keeps every state change on the caller's thread.
"""

import time
from typing import Any, Callable, Dict, Optional


def now_ms() -> int:
    return int(time.time() * 1000)


class TurnTimer:
    """Countdown computed from the epoch of the last (re)start.

    ``duration`` is the time that was left when the timer last started or
    resumed, so the remaining time is always ``duration - elapsed`` and never
    accumulates per-tick drift.
    """

    def __init__(self, clock: Callable[[], int] = now_ms):
        self.clock = clock
        self.started_at: Optional[int] = None
        self.duration: Optional[int] = None
        self.total_duration: Optional[int] = None
        self.paused = False
        self.paused_remaining: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self.started_at is not None and not self.paused

    @property
    def is_idle(self) -> bool:
        return self.started_at is None

    def start(self, limit_ms: int) -> None:
        self.started_at = self.clock()
        self.duration = int(limit_ms)
        self.total_duration = int(limit_ms)
        self.paused = False
        self.paused_remaining = None

    def remaining(self) -> Optional[int]:
        if self.is_idle:
            return None
        if self.paused:
            return self.paused_remaining
        elapsed = self.clock() - self.started_at
        return max(0, self.duration - elapsed)

    def is_expired(self) -> bool:
        return self.is_running and self.remaining() == 0

    def pause(self) -> bool:
        if not self.is_running:
            return False
        self.paused_remaining = self.remaining()
        self.paused = True
        return True

    def resume(self) -> bool:
        if not self.paused:
            return False
        self.started_at = self.clock()
        self.duration = self.paused_remaining
        self.paused_remaining = None
        self.paused = False
        return True

    def clear(self) -> None:
        self.started_at = None
        self.duration = None
        self.total_duration = None
        self.paused = False
        self.paused_remaining = None

    def snapshot(self) -> Optional[Dict[str, Any]]:
        if self.is_idle:
            return None
        return {
            'total_duration': self.total_duration,
            'time_remaining': self.remaining(),
            'is_paused': self.paused,
            'started_at': self.started_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'started_at': self.started_at,
            'duration': self.duration,
            'total_duration': self.total_duration,
            'paused': self.paused,
            'paused_remaining': self.paused_remaining,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], clock: Callable[[], int] = now_ms) -> 'TurnTimer':
        timer = cls(clock)
        if not data or data.get('started_at') is None:
            return timer
        timer.started_at = int(data['started_at'])
        timer.duration = int(data['duration'])
        timer.total_duration = int(data.get('total_duration') or data['duration'])
        timer.paused = bool(data.get('paused'))
        if timer.paused:
            timer.paused_remaining = int(data.get('paused_remaining') or 0)
        return timer


class TimeoutRegistry:
    """Named timeouts with an optional early-release predicate.

    ``has_elapsed(key)`` is true once the duration has passed on the wall
    clock, or as soon as the predicate given at ``start`` returns true
    (for example "the announcer has no live connection").
    """

    def __init__(self, clock: Callable[[], int] = now_ms):
        self.clock = clock
        self._timeouts: Dict[str, Dict[str, Any]] = {}

    def start(self, key: str, duration_ms: int, condition: Optional[Callable[[], bool]] = None) -> None:
        self._timeouts[key] = {
            'started_at': self.clock(),
            'duration': int(duration_ms),
            'condition': condition,
        }

    def is_armed(self, key: str) -> bool:
        return key in self._timeouts

    def has_elapsed(self, key: str) -> bool:
        timeout = self._timeouts.get(key)
        if not timeout:
            return False
        if self.clock() - timeout['started_at'] >= timeout['duration']:
            return True
        condition = timeout['condition']
        return bool(condition()) if condition else False

    def clear(self, key: str) -> None:
        self._timeouts.pop(key, None)

    def clear_all(self) -> None:
        self._timeouts.clear()

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        # Predicates are not serialisable; owners re-arm them on restore.
        return {
            key: {'started_at': t['started_at'], 'duration': t['duration']}
            for key, t in self._timeouts.items()
        }

    def restore(self, key: str, started_at: int, duration_ms: int,
                condition: Optional[Callable[[], bool]] = None) -> None:
        self._timeouts[key] = {
            'started_at': int(started_at),
            'duration': int(duration_ms),
            'condition': condition,
        }
