from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class RateLimiter:
    """Fixed-bucket emission counter per target service.

    Buckets are keyed `(target_service, floor(epoch / bucket_seconds))`. Only the
    trailing `history_buckets` buckets are kept; older ones are pruned lazily.
    Not thread-safe on its own; the coordinator calls it under its lock.
    """

    max_per_bucket: int = 10
    bucket_seconds: float = 60.0
    history_buckets: int = 5
    _counts: dict[tuple[str, int], int] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_per_bucket <= 0:
            raise ValueError("max_per_bucket must be positive")
        if self.bucket_seconds <= 0:
            raise ValueError("bucket_seconds must be positive")
        if self.history_buckets <= 0:
            raise ValueError("history_buckets must be positive")

    def bucket_of(self, at: datetime) -> int:
        return math.floor(at.timestamp() / self.bucket_seconds)

    def remaining(self, target_service: str, at: datetime) -> int:
        bucket = self.bucket_of(at)
        self._prune(bucket)
        return max(self.max_per_bucket - self._counts.get((target_service, bucket), 0), 0)

    def is_limited(self, target_service: str, at: datetime) -> bool:
        return self.remaining(target_service, at) == 0

    def record(self, target_service: str, at: datetime, count: int = 1) -> None:
        bucket = self.bucket_of(at)
        self._prune(bucket)
        key = (target_service, bucket)
        self._counts[key] = self._counts.get(key, 0) + count

    def __len__(self) -> int:
        return len(self._counts)

    def _prune(self, current_bucket: int) -> None:
        oldest = current_bucket - self.history_buckets + 1
        stale = [key for key in self._counts if key[1] < oldest]
        for key in stale:
            del self._counts[key]
