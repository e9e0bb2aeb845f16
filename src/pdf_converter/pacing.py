"""Pause schedule between images of a batch.

Short pauses every few items keep the host responsive; longer pauses at
batch boundaries give the interpreter a chance to reclaim decoded buffers.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import PacingConfig


@dataclass(frozen=True, slots=True)
class PacingPolicy:
    yield_every: int
    short_pause_s: float
    batch_size: int
    long_pause_s: float
    collect_garbage: bool = True
    enabled: bool = True

    @classmethod
    def for_total(cls, total: int, config: PacingConfig | None = None) -> "PacingPolicy":
        config = config or PacingConfig()
        if total > config.huge_total:
            batch_size = 10
        elif total > config.large_total:
            batch_size = 25
        else:
            batch_size = 50
        yield_every = config.yield_every_large if total > config.large_total else config.yield_every_small
        span = max(config.long_pause_max_s - config.long_pause_min_s, 0.0)
        weight = min(1.0, total / max(config.huge_total * 2, 1))
        return cls(
            yield_every=max(1, yield_every),
            short_pause_s=config.short_pause_s,
            batch_size=max(1, batch_size),
            long_pause_s=config.long_pause_min_s + span * weight,
            collect_garbage=config.collect_garbage,
            enabled=config.enabled,
        )

    def is_batch_boundary(self, index: int, total: int) -> bool:
        return index < total and index % self.batch_size == 0

    def __call__(self, index: int, total: int) -> float:
        """Seconds to pause after the *index*-th item (1-based); 0 means none."""
        if not self.enabled or index >= total:
            return 0.0
        if self.is_batch_boundary(index, total):
            return self.long_pause_s
        if index % self.yield_every == 0:
            return self.short_pause_s
        return 0.0


__all__ = ["PacingPolicy"]
