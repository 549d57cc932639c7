from datetime import datetime, timezone
from typing import Optional, Sequence

from features.tides.models.tide_types import Phase, Sample

# Height change (meters) below which two adjacent samples straddle a turning point
EXTREME_THRESHOLD = 0.1

# Returned when the series cannot be bracketed around "now"
DEFAULT_PHASE = Phase.RISING

def _as_utc(moment: datetime) -> datetime:
    # Naive times are taken as UTC so mixed inputs still compare
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment

def find_bracket(series: Sequence[Sample], now: datetime) -> Optional[int]:
    """Index i with series[i].timestamp <= now < series[i + 1].timestamp.

    The last sample brackets with an open upper edge.
    """
    now = _as_utc(now)
    for i, sample in enumerate(series):
        upper = _as_utc(series[i + 1].timestamp) if i + 1 < len(series) else None
        if _as_utc(sample.timestamp) <= now and (upper is None or now < upper):
            return i
    return None

def classify(series: Sequence[Sample], now: datetime) -> Phase:
    """Classify the tide phase at `now` from adjacent samples.

    Never raises: short or unbracketed series fall back to RISING.
    """
    index = find_bracket(series, now)
    if index is None or len(series) < 2:
        return DEFAULT_PHASE

    if index + 1 >= len(series):
        return DEFAULT_PHASE

    current = series[index].value
    following = series[index + 1].value

    if abs(following - current) < EXTREME_THRESHOLD:
        return Phase.HIGH if current > following else Phase.LOW

    return Phase.RISING if current < following else Phase.FALLING
