from collections import defaultdict, deque


class SlidingWindowLimiter:
    """Per-key request counter over a sliding time window.

    Keys whose newest hit is older than the window are swept once per window,
    so the map only holds clients that are currently active.
    """

    def __init__(self, limit: int, window_seconds: float) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._buckets: dict[str, deque[float]] = defaultdict(deque)
        self._last_sweep = 0.0

    def __len__(self) -> int:
        return len(self._buckets)

    def allow(self, key: str, now: float) -> bool:
        if now - self._last_sweep > self.window_seconds:
            self._sweep(now)
        bucket = self._buckets[key]
        while bucket and now - bucket[0] > self.window_seconds:
            bucket.popleft()
        if len(bucket) >= self.limit:
            return False
        bucket.append(now)
        return True

    def _sweep(self, now: float) -> None:
        idle = [
            key
            for key, bucket in self._buckets.items()
            if not bucket or now - bucket[-1] > self.window_seconds
        ]
        for key in idle:
            del self._buckets[key]
        self._last_sweep = now
