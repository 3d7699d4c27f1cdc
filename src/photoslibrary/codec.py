"""
Module to support encoding and decoding of values to and from JSON.

Dataclass fields are expressed in snake_case in Python and in camelCase in JSON; the JSON key
of a field can be overridden with a "json" entry in the field metadata.

Encoding omits empty values (None, "", 0, False and empty collections), because the service
distinguishes an unspecified value from an explicit zero. A value decoded from JSON where the
key was absent is therefore indistinguishable from a default value.
"""

import dataclasses
import enum
import iso8601
import json
import logging
import typing

from collections.abc import Iterable, Mapping
from contextlib import contextmanager, suppress
from datetime import datetime, timezone
from photoslibrary.error import Error
from types import NoneType, UnionType
from typing import Annotated, Any, Generic, TypeVar, Union, get_args, get_origin


_logger = logging.getLogger(__name__)


APPLICATION_JSON = "application/json"

JSONType = Any


# ----- utilities -----


@contextmanager
def _wrap(exception):
    try:
        yield
    except Exception as e:
        if isinstance(e, exception):
            raise
        raise exception(str(e)) from e


def _strip(python_type: Any) -> Any:
    while get_origin(python_type) is Annotated:
        python_type = get_args(python_type)[0]
    return python_type


def _is_subclass(python_type: Any, cls: type | tuple) -> bool:
    return isinstance(python_type, type) and issubclass(python_type, cls)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, enum.Enum):
        return False
    if isinstance(value, str | int | float | list | tuple | dict):
        return not value
    return False


def camel_case(name: str) -> str:
    """Return the camelCase form of a snake_case name."""
    head, *tail = name.rstrip("_").split("_")
    return head + "".join(word.capitalize() for word in tail)


def json_key(field: dataclasses.Field) -> str:
    """Return the JSON object key for a dataclass field."""
    return field.metadata.get("json", camel_case(field.name))


# ----- errors -----


class CodecError(Error, ValueError):
    """
    Error raised in the event that a value cannot be encoded or decoded.

    Attributes:
    • message: description of the error
    • path: location of the offending value, as a list of keys and indexes
    """

    def __init__(self, message: str | None = None, path: list[str | int] | None = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __repr__(self):
        return f"{self.__class__.__name__}({self.message!r}, {self.path!r})"

    def __str__(self):
        return " ".join(str(s) for s in (self.message, self.path) if s is not None)

    @staticmethod
    @contextmanager
    def path_on_error(path: list[str | int] | str | int):
        """Context manager to add to error path in the event that a CodecError is raised."""
        try:
            yield
        except CodecError as ce:
            if ce.path is None:
                ce.path = []
            match path:
                case str() | int():
                    ce.path.insert(0, path)
                case list():
                    ce.path = path + ce.path
            raise


class EncodeError(CodecError):
    """Error raised if a value cannot be encoded."""


class DecodeError(CodecError):
    """Error raised if a value cannot be decoded."""


# ----- base -----


PT = TypeVar("PT")


class JSONCodec(Generic[PT]):
    """
    Base class for encoding Python values to, and decoding them from, JSON-compatible values.

    Parameters and attributes:
    • python_type: the Python type hint the codec handles
    """

    _cache = {}

    def __init__(self, python_type: Any):
        self.python_type = python_type

    @staticmethod
    def handles(python_type: Any) -> bool:
        """Return True if the codec handles the specified Python type."""
        raise NotImplementedError

    @classmethod
    def get(cls, python_type: Any) -> "JSONCodec[PT]":
        """Return a codec that handles the specified Python type."""
        with suppress(KeyError, TypeError):
            return JSONCodec._cache[python_type]
        for codec_class in JSONCodec.__subclasses__():
            if codec_class.handles(python_type):
                codec = codec_class(python_type)
                with suppress(TypeError):
                    JSONCodec._cache[python_type] = codec
                return codec
        raise TypeError(f"no codec for {python_type}")

    def encode(self, value: PT) -> JSONType:
        """Encode value from Python type to JSON type."""
        raise NotImplementedError

    def decode(self, value: JSONType) -> PT:
        """Decode value from JSON type to Python type."""
        raise NotImplementedError


# subclass definition order is lookup order


class UnionJSONCodec(JSONCodec[PT]):
    """JSON codec for union types, including optional values."""

    @staticmethod
    def handles(python_type: Any) -> bool:
        return get_origin(_strip(python_type)) in {Union, UnionType}

    def __init__(self, python_type: Any):
        super().__init__(python_type)
        args = get_args(_strip(python_type))
        self.optional = NoneType in args
        self.codecs = [JSONCodec.get(arg) for arg in args if arg is not NoneType]

    def encode(self, value: PT) -> JSONType:
        if value is None and self.optional:
            return None
        error = EncodeError(f"expecting {self.python_type}")
        for codec in self.codecs:
            try:
                return codec.encode(value)
            except EncodeError as ee:
                error = ee
        raise error

    def decode(self, value: JSONType) -> PT:
        if value is None and self.optional:
            return None
        error = DecodeError(f"expecting {self.python_type}")
        for codec in self.codecs:
            try:
                return codec.decode(value)
            except DecodeError as de:
                error = de  # last arm's error, with its path
        raise error


class EnumJSONCodec(JSONCodec[enum.Enum]):
    """JSON codec for enumerations, represented by member value."""

    @staticmethod
    def handles(python_type: Any) -> bool:
        return _is_subclass(_strip(python_type), enum.Enum)

    def encode(self, value: enum.Enum) -> JSONType:
        if not isinstance(value, _strip(self.python_type)):
            raise EncodeError(f"expecting {self.python_type.__name__}")
        return value.value

    def decode(self, value: JSONType) -> enum.Enum:
        with _wrap(DecodeError):
            return _strip(self.python_type)(value)


class BoolJSONCodec(JSONCodec[bool]):
    """JSON codec for boolean values."""

    @staticmethod
    def handles(python_type: Any) -> bool:
        return _strip(python_type) is bool

    def encode(self, value: bool) -> JSONType:
        if not isinstance(value, bool):
            raise EncodeError("expecting bool")
        return value

    def decode(self, value: JSONType) -> bool:
        if not isinstance(value, bool):
            raise DecodeError("expecting boolean")
        return value


class IntJSONCodec(JSONCodec[int]):
    """
    JSON codec for integers. Decoding also accepts decimal strings, as the service represents
    64-bit integers as JSON strings.
    """

    @staticmethod
    def handles(python_type: Any) -> bool:
        return _strip(python_type) is int

    def encode(self, value: int) -> JSONType:
        if not isinstance(value, int) or isinstance(value, bool):
            raise EncodeError("expecting int")
        return value

    def decode(self, value: JSONType) -> int:
        if isinstance(value, str):
            with _wrap(DecodeError):
                return int(value)
        if not isinstance(value, int) or isinstance(value, bool):
            raise DecodeError("expecting integer")
        return value


class FloatJSONCodec(JSONCodec[float]):
    """JSON codec for floating point numbers."""

    @staticmethod
    def handles(python_type: Any) -> bool:
        return _strip(python_type) is float

    def encode(self, value: float) -> JSONType:
        if not isinstance(value, int | float) or isinstance(value, bool):
            raise EncodeError("expecting float")
        return value

    def decode(self, value: JSONType) -> float:
        if not isinstance(value, int | float) or isinstance(value, bool):
            raise DecodeError("expecting number")
        return float(value)


class StrJSONCodec(JSONCodec[str]):
    """JSON codec for Unicode character strings."""

    @staticmethod
    def handles(python_type: Any) -> bool:
        return _is_subclass(_strip(python_type), str)

    def encode(self, value: str) -> JSONType:
        if not isinstance(value, str):
            raise EncodeError("expecting str")
        return value

    def decode(self, value: JSONType) -> str:
        if not isinstance(value, str):
            raise DecodeError("expecting string")
        return value


class DatetimeJSONCodec(JSONCodec[datetime]):
    """
    JSON codec for datetime values, represented as RFC 3339 strings. Naive datetime values are
    assumed to be in UTC.
    """

    @staticmethod
    def handles(python_type: Any) -> bool:
        return _is_subclass(_strip(python_type), datetime)

    def encode(self, value: datetime) -> JSONType:
        if not isinstance(value, datetime):
            raise EncodeError("expecting datetime")
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

    def decode(self, value: JSONType) -> datetime:
        if not isinstance(value, str):
            raise DecodeError("expecting RFC 3339 string")
        with _wrap(DecodeError):
            return iso8601.parse_date(value)


class DataclassJSONCodec(JSONCodec[PT]):
    """JSON codec for dataclasses, represented as JSON objects with camelCase keys."""

    @staticmethod
    def handles(python_type: Any) -> bool:
        python_type = _strip(python_type)
        return isinstance(python_type, type) and dataclasses.is_dataclass(python_type)

    def __init__(self, python_type: Any):
        super().__init__(python_type)
        self.raw_type = _strip(python_type)
        self.hints = typing.get_type_hints(self.raw_type, include_extras=True)
        self.fields = [f for f in dataclasses.fields(self.raw_type) if f.init]

    def _codec(self, field: dataclasses.Field) -> JSONCodec:
        return JSONCodec.get(self.hints[field.name])

    def encode(self, value: PT) -> JSONType:
        if not isinstance(value, self.raw_type):
            raise EncodeError(f"expecting {self.raw_type.__name__}")
        result = {}
        for field in self.fields:
            v = getattr(value, field.name, None)
            if _is_empty(v):
                continue
            with CodecError.path_on_error(field.name):
                encoded = self._codec(field).encode(v)
            if not _is_empty(encoded):
                result[json_key(field)] = encoded
        return result

    def decode(self, value: JSONType) -> PT:
        if not isinstance(value, dict):
            raise DecodeError(f"expecting JSON object for {self.raw_type.__name__}")
        kwargs = {}
        for field in self.fields:
            key = json_key(field)
            v = value.get(key)
            if v is None:
                if (
                    field.default is dataclasses.MISSING
                    and field.default_factory is dataclasses.MISSING
                ):
                    raise DecodeError("required field missing", [key])
                continue
            with CodecError.path_on_error(key):
                kwargs[field.name] = self._codec(field).decode(v)
        with _wrap(DecodeError):
            return self.raw_type(**kwargs)


class IterableJSONCodec(JSONCodec[PT]):
    """JSON codec for lists, tuples and other iterables, represented as JSON arrays."""

    @staticmethod
    def handles(python_type: Any) -> bool:
        origin = get_origin(_strip(python_type))
        return (
            _is_subclass(origin, Iterable)
            and not _is_subclass(origin, Mapping | str)
            and len(get_args(_strip(python_type))) == 1
        )

    def __init__(self, python_type: Any):
        super().__init__(python_type)
        self.origin = get_origin(_strip(python_type))
        self.codec = JSONCodec.get(get_args(_strip(python_type))[0])

    def encode(self, value: PT) -> JSONType:
        if not isinstance(value, Iterable) or isinstance(value, str | Mapping):
            raise EncodeError("expecting iterable")
        result = []
        for index, item in enumerate(value):
            with CodecError.path_on_error(index):
                result.append(self.codec.encode(item))
        return result

    def decode(self, value: JSONType) -> PT:
        if not isinstance(value, list):
            raise DecodeError("expecting JSON array")
        result = []
        for index, item in enumerate(value):
            with CodecError.path_on_error(index):
                result.append(self.codec.decode(item))
        return result if self.origin in {list, Iterable} else self.origin(result)


class MappingJSONCodec(JSONCodec[PT]):
    """JSON codec for string-keyed mappings, represented as JSON objects."""

    @staticmethod
    def handles(python_type: Any) -> bool:
        return _is_subclass(get_origin(_strip(python_type)), Mapping)

    def __init__(self, python_type: Any):
        super().__init__(python_type)
        key_type, value_type = get_args(_strip(python_type))
        if key_type is not str:
            raise TypeError("mapping keys must be str")
        self.codec = JSONCodec.get(value_type)

    def encode(self, value: PT) -> JSONType:
        if not isinstance(value, Mapping):
            raise EncodeError("expecting mapping")
        result = {}
        for key, item in value.items():
            with CodecError.path_on_error(key):
                result[key] = self.codec.encode(item)
        return result

    def decode(self, value: JSONType) -> PT:
        if not isinstance(value, dict):
            raise DecodeError("expecting JSON object")
        result = {}
        for key, item in value.items():
            with CodecError.path_on_error(key):
                result[key] = self.codec.decode(item)
        return result


# ----- functions -----


def get_codec(python_type: Any) -> JSONCodec:
    """Return a JSON codec for the specified Python type."""
    return JSONCodec.get(python_type)


def encode_json(value: Any, python_type: Any = None) -> bytes:
    """
    Encode a value as a UTF-8 JSON document.

    Parameters:
    • value: value to encode
    • python_type: type hint of value  [type of value]
    """
    encoded = get_codec(python_type or type(value)).encode(value)
    with _wrap(EncodeError):
        return json.dumps(encoded).encode()


def parse_json(content: bytes | bytearray | str) -> JSONType:
    """Parse a JSON document, raising DecodeError if it is not valid JSON."""
    try:
        return json.loads(content)
    except ValueError as ve:
        raise DecodeError(f"invalid JSON: {ve}") from ve


def decode_json(python_type: Any, content: bytes | bytearray | str) -> Any:
    """
    Decode a JSON document into a value of the specified type.

    Parameters:
    • python_type: type hint of the value to decode
    • content: JSON document
    """
    return get_codec(python_type).decode(parse_json(content))
