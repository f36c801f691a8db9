from __future__ import annotations

from collections.abc import Sequence


def support_resistance(closes: Sequence[float]) -> tuple[float | None, float | None]:
    """Support/resistance as the min/max of the close series."""
    if not closes:
        return None, None
    return min(closes), max(closes)


def average_volume(volumes: Sequence[float], period: int = 20) -> float | None:
    """Mean of the trailing ``period`` volumes, excluding the latest bar."""
    prior = volumes[:-1][-period:]
    if not prior:
        return None
    return sum(prior) / len(prior)


def volume_ratio(volumes: Sequence[float]) -> float | None:
    """Latest volume as a multiple of the mean of the prior volumes."""
    if len(volumes) < 2:
        return None
    prior = volumes[:-1]
    avg = sum(prior) / len(prior)
    if avg <= 0:
        return None
    return volumes[-1] / avg
