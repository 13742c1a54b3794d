# stdlib
from datetime import datetime, tzinfo, timezone
from typing import Optional
from zoneinfo import ZoneInfo

def resolve_zone(name: Optional[str]) -> Optional[tzinfo]:
    """
    Return the zone used for local calendar time.

    ``None`` (or an empty name) selects the operating system's local
    zone, which the standard library handles through naive datetimes.
    """
    if not name:
        return None
    return ZoneInfo(name)

def localize(
        naive: datetime,
        zone: Optional[tzinfo] = None
    ) -> Optional[datetime]:
    """
    Attach the local zone to a wall-clock datetime.

    Ambiguous wall times (clocks turned back) resolve to the earlier
    instant. Wall times that do not exist in the zone (clocks turned
    forward) return ``None``.

    Parameters
    ----------
    naive : datetime
        Wall-clock time without tzinfo.
    zone : tzinfo, optional
        Target zone; ``None`` means the system local zone.

    Returns
    -------
    datetime or None
        Aware datetime, or ``None`` when the wall time is skipped.
    """
    if naive.tzinfo is not None:
        return naive
    # fold=0 selects the first occurrence of a repeated wall time
    candidate = naive.replace(fold=0, tzinfo=zone)
    epoch = candidate.timestamp()
    # A skipped wall time does not survive the round trip
    back = datetime.fromtimestamp(epoch, zone)
    if back.replace(tzinfo=None, fold=0) != naive.replace(fold=0):
        return None
    return to_local(epoch, zone)

def to_local(epoch: float, zone: Optional[tzinfo] = None) -> datetime:
    """Convert epoch seconds to an aware datetime in the local zone."""
    instant = datetime.fromtimestamp(epoch, timezone.utc)
    if zone is None:
        return instant.astimezone()
    return instant.astimezone(zone)

def to_epoch(moment: datetime, zone: Optional[tzinfo] = None) -> Optional[int]:
    """
    Return whole epoch seconds for a datetime, localizing naive values.

    ``None`` is returned for naive wall times skipped by the zone.
    """
    aware = localize(moment, zone)
    if aware is None:
        return None
    return int(aware.timestamp() // 1)
