"""Time helpers.

The engine stores integer UNIX seconds everywhere.  Services take a
``clock`` callable defaulting to ``now_ts`` so tests can pin time.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable

Clock = Callable[[], int]


def now_ts() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def iso(ts: int) -> str:
    """ISO-8601 UTC with a ``Z`` suffix, as used in webhook envelopes."""
    dt = datetime.datetime.fromtimestamp(ts, datetime.UTC)
    return dt.isoformat().replace("+00:00", "Z")


def parse_iso(value: str) -> int:
    dt = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.UTC)
    return int(dt.timestamp())
