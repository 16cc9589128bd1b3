"""Typed access to the values that Redis scripts return."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Sequence


def _wrap(value: int, bits: int) -> int:
    """Wrap an integer into a signed integer of the given width."""
    span = 1 << bits
    half = span >> 1
    return (value + half) % span - half


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _text(value: Any) -> Optional[str]:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    if isinstance(value, str):
        return value
    return None


def _parse_float(text: str, single: bool = False) -> float:
    """Parse a decimal number, rejecting padding and digit separators."""
    if text != text.strip() or "_" in text:
        raise ValueError(f"invalid number: {text!r}")
    try:
        number = float(text)
    except ValueError:
        raise ValueError(f"invalid number: {text!r}") from None
    if math.isinf(number) and "inf" not in text.lower():
        raise ValueError(f"value out of range: {text!r}")
    if single and math.isfinite(number):
        try:
            number = struct.unpack("f", struct.pack("f", number))[0]
        except OverflowError:
            raise ValueError(f"value out of range: {text!r}") from None
    return number


def _truncate(number: float, bits: int) -> int:
    if not math.isfinite(number):
        raise ValueError(f"cannot convert {number!r} to an integer")
    return _wrap(int(number), bits)


@dataclass(frozen=True)
class ReplyValue:
    """A single value from a script reply."""

    value: Any = None

    def as_int32(self, default: int) -> int:
        """Return the value as a 32-bit integer, or ``default`` if it has none."""
        text = _text(self.value)
        if text is not None:
            return _truncate(_parse_float(text, single=True), 32)
        if _is_int(self.value):
            return _wrap(self.value, 32)
        return default

    def as_int64(self, default: int) -> int:
        """Return the value as a 64-bit integer, or ``default`` if it has none."""
        text = _text(self.value)
        if text is not None:
            return _truncate(_parse_float(text), 64)
        if _is_int(self.value):
            return _wrap(self.value, 64)
        return default

    def as_float64(self, default: float) -> float:
        """Return the value as a float, or ``default`` if it has none."""
        text = _text(self.value)
        if text is not None:
            return _parse_float(text)
        if _is_int(self.value):
            return float(self.value)
        if isinstance(self.value, float):
            return self.value
        return default

    def as_string(self) -> str:
        """Return the value as text; values that are not text or integers give ''."""
        text = _text(self.value)
        if text is not None:
            return text
        if _is_int(self.value):
            return str(self.value)
        return ""

    def is_nil(self) -> bool:
        return self.value is None

    def to_array_reader(self) -> Optional["ArrayReplyReader"]:
        """Return a reader over the value if it is an array, else None."""
        if isinstance(self.value, (list, tuple)):
            return ArrayReplyReader(self.value)
        return None


EMPTY = ReplyValue()


def nullable_int(value: ReplyValue) -> Optional[int]:
    """Return the value as an integer, or None when the value is nil."""
    if value.is_nil():
        return None
    return value.as_int64(0)


def nullable_string(value: ReplyValue) -> Optional[str]:
    """Return the value as text, or None when the value is nil."""
    if value.is_nil():
        return None
    return value.as_string()


class ArrayReplyReader:
    """Sequential reader over an array reply."""

    def __init__(self, reply: Sequence[Any]) -> None:
        self._reply = list(reply)
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    def __len__(self) -> int:
        return len(self._reply)

    def __iter__(self) -> Iterator[ReplyValue]:
        return (ReplyValue(item) for item in self._reply)

    def has_next(self) -> bool:
        return self._position < len(self._reply)

    def read_value(self) -> ReplyValue:
        """Return the next value; past the end, an empty value."""
        position = self._position
        self._position += 1
        if position < len(self._reply):
            return ReplyValue(self._reply[position])
        return EMPTY

    def read_array(self) -> "ArrayReplyReader":
        value = self.read_value().value
        if not isinstance(value, (list, tuple)):
            raise TypeError(f"expected an array reply, got {type(value).__name__}")
        return ArrayReplyReader(value)

    def read_string(self) -> str:
        return self.read_value().as_string()

    def read_int32(self, default: int) -> int:
        return self.read_value().as_int32(default)

    def read_int64(self, default: int) -> int:
        return self.read_value().as_int64(default)

    def read_float64(self, default: float) -> float:
        return self.read_value().as_float64(default)

    def skip(self) -> None:
        self.read_value()

    def for_each(self, action: Callable[[int, ReplyValue], None]) -> None:
        """Call ``action`` with each index and value; an exception stops the walk."""
        for index, value in enumerate(self):
            action(index, value)


@dataclass
class ScriptResult:
    """Fields that the script commands fill from a reply."""

    key: str = ""
    value: str = ""
    value2: str = ""
    value_int64: int = 0
    value2_int64: int = 0
    count_down: int = 0
    end_time: int = 0
    count: int = 0