import threading
import time
from collections import deque
from typing import Deque, Dict

_attempts: Dict[str, Deque[float]] = {}
_lock = threading.Lock()
_last_sweep = 0.0


def _prune(hits: Deque[float], now: float, window_sec: float) -> None:
    while hits and now - hits[0] >= window_sec:
        hits.popleft()


def _sweep(now: float, window_sec: float) -> None:
    """Drop every key whose newest hit has left the window."""
    global _last_sweep
    for key in [k for k, hits in _attempts.items() if not hits or now - hits[-1] >= window_sec]:
        del _attempts[key]
    _last_sweep = now


def allow_attempt(key: str, limit: int, window_sec: float, now=None) -> bool:
    """Sliding-window limiter: at most `limit` attempts per `window_sec` per key.

    A limit of 0 (or less) disables throttling. Idle keys are swept at most
    once per window so the table only holds callers seen recently.
    """
    if limit <= 0:
        return True
    now = time.time() if now is None else now
    with _lock:
        if now - _last_sweep >= window_sec:
            _sweep(now, window_sec)
        hits = _attempts.get(key)
        if hits is not None:
            _prune(hits, now, window_sec)
        else:
            hits = _attempts[key] = deque()
        if len(hits) >= limit:
            return False
        hits.append(now)
        return True


def tracked_keys() -> int:
    with _lock:
        return len(_attempts)


def reset() -> None:
    global _last_sweep
    with _lock:
        _attempts.clear()
        _last_sweep = 0.0
