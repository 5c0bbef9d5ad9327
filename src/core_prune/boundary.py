"""Infer the expiry boundary of a dated directory from its position in the tree.

Company trees are laid out as ``<company>/<year>/<month>/<day>/<hour>/<minute>``
and may stop at any level. A directory stands for the whole interval its
path names, so its boundary is the last second of that interval: ``2023`` is
``2023-12-31T23:59:59Z`` and ``2024/03/10`` is ``2024-03-10T23:59:59Z``.
Comparing the coarsest directory first lets a fully expired year go in one
delete instead of one per minute leaf.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Union

ONE_SECOND = timedelta(seconds=1)
DECIMAL = re.compile(r"[+-]?[0-9]+")
DATE_LEVELS = ("year", "month", "day", "hour", "minute")


def as_utc(moment: datetime) -> datetime:
    """Return ``moment`` in UTC; naive values are taken to already be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def base_depth(root: Union[str, Path]) -> int:
    """Number of path segments in ``root``; the year directory sits one below."""
    return len(Path(root).parts)


def infer_boundary(
    path: Union[str, Path],
    depth: int,
    now: Optional[datetime] = None,
) -> datetime:
    """Return the last instant (UTC) represented by ``path``.

    ``depth`` is the segment count of the company root, so ``path``'s segments
    after it are year, month, day, hour and minute. Paths at or above the
    company root, and paths whose dates cannot be represented, return ``now``
    and are therefore never expired. Non-numeric month, day, hour or minute
    segments count as ``0``.
    """
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)

    segments = date_segments(path, depth)
    if not segments:
        return now

    year = _parse_year(segments[0])
    if year is None:
        return now
    fields = [_date_piece(segment) for segment in segments[1:]]

    try:
        return _interval_end(year, fields) - ONE_SECOND
    except (ValueError, OverflowError):
        return now


def _interval_end(year: int, fields: Sequence[int]) -> datetime:
    if not fields:
        return datetime(year + 1, 1, 1, tzinfo=timezone.utc)

    month = fields[0]
    if len(fields) == 1:
        return _month_start(year, month + 1)

    day, rest = fields[1], list(fields[2:])
    start = _month_start(year, month)
    if not rest:
        return start + timedelta(days=day)
    hour = rest[0]
    if len(rest) == 1:
        return start + timedelta(days=day - 1, hours=hour + 1)
    return start + timedelta(days=day - 1, hours=hour, minutes=rest[1] + 1)


def _month_start(year: int, month: int) -> datetime:
    # Out-of-range months roll over into neighbouring years: 0 is December
    # of the year before, 13 is January of the year after.
    carry, index = divmod(month - 1, 12)
    return datetime(year + carry, index + 1, 1, tzinfo=timezone.utc)


def parse_decimal(text: str) -> Optional[int]:
    """Parse a signed base-10 integer of ASCII digits; anything else is None."""
    if not DECIMAL.fullmatch(text):
        return None
    return int(text)


def _parse_year(segment: str) -> Optional[int]:
    return parse_decimal(segment)


def _date_piece(segment: str) -> int:
    value = parse_decimal(segment)
    return 0 if value is None else value


def date_segments(path: Union[str, Path], depth: int) -> List[str]:
    """Return the dated segments of ``path`` below the company root."""
    return list(Path(path).parts[depth:depth + len(DATE_LEVELS)])
