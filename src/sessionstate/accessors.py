"""
Typed getters for session values.

By default each getter returns the zero value of its type when the key is
missing or holds a value of another type, with no way to tell the cases
apart. Pass strict=True to get a KeyError or TypeError instead.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable

from .record import SessionScope

ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)

INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1

_MISSING = object()


def _is_int(value: Any) -> bool:
    # bool is a subclass of int but is never accepted as one
    return isinstance(value, int) and not isinstance(value, bool)


def _is_int32(value: Any) -> bool:
    return _is_int(value) and INT32_MIN <= value <= INT32_MAX


def _is_int64(value: Any) -> bool:
    return _is_int(value) and INT64_MIN <= value <= INT64_MAX


def _extract(key: str, value: Any, accepts: Callable[[Any], bool], zero: Any, type_name: str, strict: bool) -> Any:
    if value is _MISSING:
        if strict:
            raise KeyError(key)
        return zero
    if not accepts(value):
        if strict:
            raise TypeError(f"Session value {key!r} is {type(value).__name__}, not {type_name}")
        return zero
    return value


class TypedAccessorsMixin(ABC):
    """Typed wrappers around get() and pop(); mixed into Manager."""

    @abstractmethod
    async def get(self, scope: SessionScope, key: str, default: Any = None) -> Any: ...

    @abstractmethod
    async def pop(self, scope: SessionScope, key: str, default: Any = None) -> Any: ...

    async def get_string(self, scope: SessionScope, key: str, *, strict: bool = False) -> str:
        value = await self.get(scope, key, _MISSING)
        return _extract(key, value, lambda v: isinstance(v, str), "", "str", strict)

    async def get_bool(self, scope: SessionScope, key: str, *, strict: bool = False) -> bool:
        value = await self.get(scope, key, _MISSING)
        return _extract(key, value, lambda v: isinstance(v, bool), False, "bool", strict)

    async def get_int(self, scope: SessionScope, key: str, *, strict: bool = False) -> int:
        value = await self.get(scope, key, _MISSING)
        return _extract(key, value, _is_int, 0, "int", strict)

    async def get_int32(self, scope: SessionScope, key: str, *, strict: bool = False) -> int:
        value = await self.get(scope, key, _MISSING)
        return _extract(key, value, _is_int32, 0, "int32", strict)

    async def get_int64(self, scope: SessionScope, key: str, *, strict: bool = False) -> int:
        value = await self.get(scope, key, _MISSING)
        return _extract(key, value, _is_int64, 0, "int64", strict)

    async def get_float(self, scope: SessionScope, key: str, *, strict: bool = False) -> float:
        value = await self.get(scope, key, _MISSING)
        return _extract(key, value, lambda v: isinstance(v, float), 0.0, "float", strict)

    async def get_bytes(self, scope: SessionScope, key: str, *, strict: bool = False) -> bytes:
        value = await self.get(scope, key, _MISSING)
        return _extract(key, value, lambda v: isinstance(v, bytes), b"", "bytes", strict)

    async def get_time(self, scope: SessionScope, key: str, *, strict: bool = False) -> datetime:
        """Return a datetime value; ZERO_TIME stands in for a missing one."""
        value = await self.get(scope, key, _MISSING)
        return _extract(key, value, lambda v: isinstance(v, datetime), ZERO_TIME, "datetime", strict)

    # The pop_* variants remove the key whenever it exists, even if the
    # stored value turns out to have the wrong type.

    async def pop_string(self, scope: SessionScope, key: str, *, strict: bool = False) -> str:
        value = await self.pop(scope, key, _MISSING)
        return _extract(key, value, lambda v: isinstance(v, str), "", "str", strict)

    async def pop_bool(self, scope: SessionScope, key: str, *, strict: bool = False) -> bool:
        value = await self.pop(scope, key, _MISSING)
        return _extract(key, value, lambda v: isinstance(v, bool), False, "bool", strict)

    async def pop_int(self, scope: SessionScope, key: str, *, strict: bool = False) -> int:
        value = await self.pop(scope, key, _MISSING)
        return _extract(key, value, _is_int, 0, "int", strict)

    async def pop_int32(self, scope: SessionScope, key: str, *, strict: bool = False) -> int:
        value = await self.pop(scope, key, _MISSING)
        return _extract(key, value, _is_int32, 0, "int32", strict)

    async def pop_int64(self, scope: SessionScope, key: str, *, strict: bool = False) -> int:
        value = await self.pop(scope, key, _MISSING)
        return _extract(key, value, _is_int64, 0, "int64", strict)

    async def pop_float(self, scope: SessionScope, key: str, *, strict: bool = False) -> float:
        value = await self.pop(scope, key, _MISSING)
        return _extract(key, value, lambda v: isinstance(v, float), 0.0, "float", strict)

    async def pop_bytes(self, scope: SessionScope, key: str, *, strict: bool = False) -> bytes:
        value = await self.pop(scope, key, _MISSING)
        return _extract(key, value, lambda v: isinstance(v, bytes), b"", "bytes", strict)

    async def pop_time(self, scope: SessionScope, key: str, *, strict: bool = False) -> datetime:
        value = await self.pop(scope, key, _MISSING)
        return _extract(key, value, lambda v: isinstance(v, datetime), ZERO_TIME, "datetime", strict)
