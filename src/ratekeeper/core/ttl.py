"""
Remaining-TTL readings as a tagged value.

Redis answers PTTL with a millisecond count, or with a negative sentinel:
-2 when the key does not exist, -1 when it exists without an expiry.
Depending on the client the reply may also surface as a duration whose unit
is either milliseconds or sub-millisecond, so both encodings of each
sentinel are recognised here and nothing past this module sees raw negatives.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import timedelta

_NO_EXPIRY_SENTINELS = (timedelta(milliseconds=-1), timedelta(microseconds=-1))
_ABSENT_SENTINELS = (timedelta(milliseconds=-2), timedelta(microseconds=-2))


class TtlKind(enum.Enum):
    POSITIVE = "positive"
    NO_EXPIRY = "no_expiry"
    ABSENT = "absent"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Ttl:
    kind: TtlKind
    remaining: timedelta | None = None

    @classmethod
    def from_pttl(cls, raw) -> "Ttl":
        if isinstance(raw, bool) or raw is None:
            return cls(TtlKind.UNKNOWN)

        if isinstance(raw, timedelta):
            value = raw
        else:
            try:
                ms = int(raw)
            except (TypeError, ValueError):
                return cls(TtlKind.UNKNOWN)
            if ms == -1:
                return cls(TtlKind.NO_EXPIRY)
            if ms == -2:
                return cls(TtlKind.ABSENT)
            value = timedelta(milliseconds=ms)

        if value > timedelta(0):
            return cls(TtlKind.POSITIVE, value)
        if value in _NO_EXPIRY_SENTINELS:
            return cls(TtlKind.NO_EXPIRY)
        # zero: the key is at the end of its life
        if value in _ABSENT_SENTINELS or value == timedelta(0):
            return cls(TtlKind.ABSENT)
        return cls(TtlKind.UNKNOWN)

    @property
    def needs_fixup(self) -> bool:
        return self.kind in (TtlKind.NO_EXPIRY, TtlKind.UNKNOWN)
