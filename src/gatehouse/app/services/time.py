from __future__ import annotations

import math


def format_reset_time(seconds: float) -> str:
    """Render a countdown as its largest applicable unit pair.

    ``3900`` becomes ``"1h 5m"``, ``200`` becomes ``"3m 20s"`` and ``45``
    becomes ``"45s"``. Fractional seconds round up so the countdown never
    reads ``"0s"`` while time remains. Anything at or below zero is
    ``"now"``.
    """

    if seconds <= 0:
        return "now"

    total = math.ceil(seconds)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)

    if hours > 0:
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"
    if minutes > 0:
        return f"{minutes}m {secs}s" if secs else f"{minutes}m"
    return f"{secs}s"


__all__ = ["format_reset_time"]
