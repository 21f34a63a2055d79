"""
Codecs turn a session's (deadline, values) pair into bytes for a store.

JSONCodec is the default. Values are tagged on the way out so that types
JSON cannot express natively come back as the same Python type.
"""

import base64
import math
import pickle
from datetime import datetime
from typing import Any, Dict, Protocol, Tuple, runtime_checkable

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError

from .errors import CodecError

_TAG_BYTES = "__bytes__"
_TAG_DATETIME = "__datetime__"
_TAG_TUPLE = "__tuple__"
_TAG_DICT = "__dict__"
_TAG_FLOAT = "__float__"

_JSON_SCALARS = (str, int, bool)


@runtime_checkable
class Codec(Protocol):
    def encode(self, deadline: datetime, values: Dict[str, Any]) -> bytes: ...

    def decode(self, data: bytes) -> Tuple[datetime, Dict[str, Any]]: ...


class _Envelope(BaseModel):
    deadline: datetime
    values: Dict[str, Any]


def _pack(value: Any) -> Any:
    kind = type(value)
    if value is None or kind in _JSON_SCALARS:
        return value
    if kind is float:
        # inf and nan have no JSON literal
        return value if math.isfinite(value) else {_TAG_FLOAT: repr(value)}
    if kind is bytes:
        return {_TAG_BYTES: base64.b64encode(value).decode("ascii")}
    if kind is datetime:
        return {_TAG_DATETIME: value.isoformat()}
    if kind is list:
        return [_pack(item) for item in value]
    if kind is tuple:
        return {_TAG_TUPLE: [_pack(item) for item in value]}
    if kind is dict:
        for key in value:
            if type(key) is not str:
                raise CodecError(f"Nested dict keys must be str, got {type(key).__name__}")
        return {_TAG_DICT: {key: _pack(item) for key, item in value.items()}}
    raise CodecError(f"Unsupported session value type: {kind.__name__}")


def _unpack(value: Any) -> Any:
    if isinstance(value, list):
        return [_unpack(item) for item in value]
    if not isinstance(value, dict):
        return value

    if len(value) != 1:
        raise CodecError("Malformed tagged value in session data")
    (tag, payload), = value.items()
    try:
        if tag == _TAG_BYTES:
            return base64.b64decode(payload, validate=True)
        if tag == _TAG_DATETIME:
            return datetime.fromisoformat(payload)
        if tag == _TAG_FLOAT:
            return float(payload)
        if tag == _TAG_TUPLE:
            return tuple(_unpack(item) for item in payload)
        if tag == _TAG_DICT:
            return {key: _unpack(item) for key, item in payload.items()}
    except (TypeError, ValueError, AttributeError) as e:
        raise CodecError(f"Invalid payload for {tag}: {e}") from e
    raise CodecError(f"Unknown value tag {tag!r} in session data")


class JSONCodec:
    """
    Encode session data as a JSON document.

    Supports None, bool, int, float, str, bytes, datetime, and lists, tuples
    and str-keyed dicts of those.
    """

    def encode(self, deadline: datetime, values: Dict[str, Any]) -> bytes:
        packed = {key: _pack(value) for key, value in values.items()}
        try:
            envelope = _Envelope(deadline=deadline, values=packed)
        except ValidationError as e:
            raise CodecError(f"Invalid session data: {e}") from e
        try:
            return envelope.model_dump_json().encode("utf-8")
        except (PydanticSerializationError, UnicodeEncodeError) as e:
            raise CodecError(f"Could not serialize session data: {e}") from e

    def decode(self, data: bytes) -> Tuple[datetime, Dict[str, Any]]:
        try:
            envelope = _Envelope.model_validate_json(data)
        except ValidationError as e:
            raise CodecError(f"Corrupted session data: {e}") from e
        values = {key: _unpack(value) for key, value in envelope.values.items()}
        return envelope.deadline, values


class PickleCodec:
    """
    Encode session data with pickle.

    Round-trips any picklable value. Only use it with a store that nobody
    else can write to, since unpickling runs arbitrary code.
    """

    def encode(self, deadline: datetime, values: Dict[str, Any]) -> bytes:
        try:
            return pickle.dumps((deadline, values), protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise CodecError(f"Could not pickle session data: {e}") from e

    def decode(self, data: bytes) -> Tuple[datetime, Dict[str, Any]]:
        try:
            decoded = pickle.loads(data)
        except (pickle.UnpicklingError, EOFError, TypeError, ValueError, AttributeError, ImportError, KeyError, IndexError) as e:
            raise CodecError(f"Could not unpickle session data: {e}") from e

        if not (
            isinstance(decoded, tuple)
            and len(decoded) == 2
            and isinstance(decoded[0], datetime)
            and isinstance(decoded[1], dict)
        ):
            raise CodecError("Unpickled session data has the wrong shape")
        return decoded
