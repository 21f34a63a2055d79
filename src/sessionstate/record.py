"""Per-session state and the per-request scope that carries it."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any, Dict, NamedTuple, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_aware(moment: datetime) -> datetime:
    # Naive datetimes cannot be compared with the UTC deadlines used everywhere else
    if moment.tzinfo is None or moment.utcoffset() is None:
        raise ValueError(f"Session deadlines must be timezone-aware, got {moment!r}")
    return moment


class Status(IntEnum):
    """State of the session data during a request cycle."""

    # Not changed in the current request cycle.
    UNMODIFIED = 0
    # Changed in the current request cycle and needs committing.
    MODIFIED = 1
    # Deleted from the store in the current request cycle.
    DESTROYED = 2


@dataclass
class SessionRecord:
    """
    Mutable state of one session.

    `token` stays empty until the record is first committed. `lock` guards
    every read and write of the other fields.
    """

    deadline: datetime
    token: str = ""
    status: Status = Status.UNMODIFIED
    values: Dict[str, Any] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @classmethod
    def new(
        cls,
        lifetime: timedelta,
        *,
        override_lifetime: Optional[timedelta] = None,
        override_deadline: Optional[datetime] = None,
    ) -> "SessionRecord":
        record = cls(deadline=utcnow() + lifetime)
        record.override_deadline(override_lifetime, override_deadline)
        return record

    def override_deadline(
        self,
        lifetime: Optional[timedelta] = None,
        deadline: Optional[datetime] = None,
    ) -> None:
        """Apply per-call deadline options; an explicit deadline wins over a lifetime."""
        if lifetime is not None:
            self.deadline = utcnow() + lifetime
        if deadline is not None:
            self.deadline = require_aware(deadline)

    def reset(self, lifetime: timedelta) -> None:
        """Turn the record into a brand-new anonymous session, keeping its status."""
        self.token = ""
        self.deadline = utcnow() + lifetime
        self.values.clear()


class SessionScope:
    """
    Carrier for the session records of a single request.

    A scope can hold records for several managers at once. Each manager
    addresses its own record with the opaque handle it was created with.
    """

    __slots__ = ("_records",)

    def __init__(self) -> None:
        self._records: Dict[object, SessionRecord] = {}

    def __contains__(self, handle: object) -> bool:
        return handle in self._records

    def get(self, handle: object) -> Optional[SessionRecord]:
        return self._records.get(handle)

    def attach(self, handle: object, record: SessionRecord) -> None:
        self._records[handle] = record


class SaveResult(NamedTuple):
    token: str
    expiry: Optional[datetime]
    unmodified: bool = False


# Returned by Manager.save() when there was nothing to persist.
UNMODIFIED = SaveResult(token="", expiry=None, unmodified=True)
