from __future__ import annotations


def norm(x: float | None, lo: float, hi: float) -> float:
    """Clamp-normalize ``x`` into [0, 1] between ``lo`` and ``hi``.

    None (or NaN) maps to 0 so a missing input never contributes to a score.
    """
    if x is None or x != x:
        return 0.0
    if x <= lo:
        return 0.0
    if x >= hi:
        return 1.0
    return (x - lo) / (hi - lo)
