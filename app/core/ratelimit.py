# ================================
# file: app/core/ratelimit.py
# ================================
"""Fixed-window request counter per (bucket, client). In-memory, one process."""
import threading
import time
from typing import Dict, Tuple

_lock = threading.Lock()
# (bucket, client) -> (window start, count)
_windows: Dict[Tuple[str, str], Tuple[float, int]] = {}
_last_sweep = 0.0


def _sweep(now: float, window: float) -> None:
    """Drop entries whose window has closed. Caller holds the lock."""
    global _last_sweep
    if now - _last_sweep < window:
        return
    for key in [k for k, (start, _) in _windows.items() if now - start >= window]:
        del _windows[key]
    _last_sweep = now


def hit(bucket: str, client: str, max_requests: int, window_ms: int) -> Tuple[bool, int]:
    """
    Count one request. Returns (allowed, retry_after_seconds).
    retry_after is 0 while the client is under the limit.
    """
    now = time.time()
    window = window_ms / 1000.0
    key = (bucket, client)
    with _lock:
        _sweep(now, window)
        start, count = _windows.get(key, (now, 0))
        if now - start >= window:
            start, count = now, 0
        count += 1
        _windows[key] = (start, count)
    if count > max_requests:
        return False, max(1, int(start + window - now + 0.999))
    return True, 0


def tracked() -> int:
    with _lock:
        return len(_windows)


def reset() -> None:
    global _last_sweep
    with _lock:
        _windows.clear()
        _last_sweep = 0.0
