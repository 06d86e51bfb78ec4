"""Stratified sampling of calls for the sampled analysis tier.

Selection policy (all knobs are configurable):
    1. Calls are ordered by date. The earliest and latest calls are always
       kept, so the sample spans the same dates as the full set.
    2. The remaining calls are grouped into fixed-width time buckets
       (weekly by default). The remaining budget is split across buckets in
       proportion to their size, at least one call per bucket while the
       budget allows.
    3. Within a bucket, up to `extreme_share` of its quota goes to the
       strongest and weakest heat scores (alternating), so the synthesis sees
       both good and bad calls. The rest is spread evenly across the bucket.

The same input always yields the same sample.
"""

import logging
from collections import defaultdict

from ..config import get_settings
from ..models import CallRecord, SamplingInfo

logger = logging.getLogger(__name__)

STRATEGY_NAME = "stratified"


class StratifiedSampler:
    """Picks a representative, time-spread subset of calls."""

    def __init__(self, bucket_days: int | None = None, extreme_share: float | None = None):
        settings = get_settings()
        self.bucket_days = bucket_days or settings.sample_bucket_days
        self.extreme_share = settings.sample_extreme_share if extreme_share is None else extreme_share
        if self.bucket_days < 1:
            raise ValueError("bucket_days must be at least 1")
        if not 0 <= self.extreme_share <= 1:
            raise ValueError("extreme_share must be between 0 and 1")

    def sample(
        self, records: list[CallRecord], target_count: int
    ) -> tuple[list[CallRecord], SamplingInfo]:
        """Reduce records to target_count calls.

        Returns:
            The sampled calls in chronological order, and sampling info
        """
        original_count = len(records)
        if target_count >= original_count:
            logger.warning(
                "Sampling requested for %d calls with target %d; keeping all calls",
                original_count,
                target_count,
            )
            return list(records), SamplingInfo(
                original_count=original_count,
                sampled_count=original_count,
                strategy=STRATEGY_NAME,
            )
        if target_count < 2:
            raise ValueError("target_count must be at least 2 to keep both ends of the range")

        ordered = sorted(records, key=lambda r: r.call_date)
        keep = {0, len(ordered) - 1}

        buckets = self._bucket(ordered)
        quotas = self._allocate([len(b) for b in buckets], target_count - len(keep))
        for bucket, quota in zip(buckets, quotas):
            keep.update(self._pick_from_bucket(ordered, bucket, quota))

        sampled = [ordered[i] for i in sorted(keep)]
        logger.info(
            "Sampled %d of %d calls across %d buckets",
            len(sampled),
            original_count,
            len(buckets),
        )
        return sampled, SamplingInfo(
            original_count=original_count,
            sampled_count=len(sampled),
            strategy=STRATEGY_NAME,
        )

    def _bucket(self, ordered: list[CallRecord]) -> list[list[int]]:
        """Group interior call indexes into time buckets, earliest bucket first."""
        origin = ordered[0].call_date.date()
        groups: dict[int, list[int]] = defaultdict(list)
        for index in range(1, len(ordered) - 1):
            offset = (ordered[index].call_date.date() - origin).days
            groups[offset // self.bucket_days].append(index)
        return [groups[key] for key in sorted(groups)]

    @staticmethod
    def _allocate(sizes: list[int], budget: int) -> list[int]:
        """Split budget across buckets proportionally (largest remainder)."""
        quotas = [0] * len(sizes)
        if budget <= 0 or not sizes:
            return quotas

        if budget < len(sizes):
            # Not enough for one per bucket: spread picks evenly over time
            step = len(sizes) / budget
            for i in range(budget):
                quotas[int(i * step)] = 1
            return quotas

        quotas = [1] * len(sizes)
        remaining = budget - len(sizes)
        capacity = [size - 1 for size in sizes]
        total_capacity = sum(capacity)
        if remaining <= 0 or total_capacity == 0:
            return quotas

        exact = [remaining * cap / total_capacity for cap in capacity]
        floors = [min(int(share), cap) for share, cap in zip(exact, capacity)]
        quotas = [q + f for q, f in zip(quotas, floors)]
        leftover = remaining - sum(floors)

        by_remainder = sorted(range(len(sizes)), key=lambda i: (-(exact[i] - floors[i]), i))
        for i in by_remainder:
            if leftover == 0:
                break
            if quotas[i] < sizes[i]:
                quotas[i] += 1
                leftover -= 1
        return quotas

    def _pick_from_bucket(self, ordered: list[CallRecord], bucket: list[int], quota: int) -> list[int]:
        if quota >= len(bucket):
            return list(bucket)
        if quota <= 0:
            return []

        chosen: list[int] = []
        extremes_wanted = int(quota * self.extreme_share)
        scored = sorted(
            (i for i in bucket if ordered[i].heat_score is not None),
            key=lambda i: (ordered[i].heat_score, i),
        )
        low, high = 0, len(scored) - 1
        take_high = True
        while len(chosen) < extremes_wanted and low <= high:
            if take_high:
                chosen.append(scored[high])
                high -= 1
            else:
                chosen.append(scored[low])
                low += 1
            take_high = not take_high

        picked = set(chosen)
        rest = [i for i in bucket if i not in picked]
        needed = quota - len(chosen)
        step = len(rest) / needed if needed else 0
        chosen.extend(rest[int(k * step)] for k in range(needed))
        return chosen
