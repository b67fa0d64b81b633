"""Value codec: typed values <-> escaped text stored after ``key=``.

Scalar escaping (rules applied in this order; reordering changes the output):

    <eq>  -> <<eq>>       protect literal tokens first
    =     -> <eq>
    <cr>  -> <<cr>>
    \\r    -> <cr>
    <lf>  -> <<lf>>
    \\n    -> <lf>

Arrays escape each element as a scalar, then add a comma layer
(``<cm>`` -> ``<<cm>>``, ``,`` -> ``<cm>``) and join with ``,``.

Decoding walks the rule pairs backwards. Each pair is undone by turning the
token back into its character and then collapsing the doubled token, which
at that point reads ``<char>``, back into the token. Text that already
contains ``<char>`` for a reserved char (``<=>``, ``<\\r>``, ``<\\n>``, and
``<,>`` inside arrays) escapes to the same bytes as the literal token and
decodes as the token.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from flatkv.errors import FormatError, ValidationError

SCALAR_RULES: tuple[tuple[str, str], ...] = (
    ("<eq>", "<<eq>>"),
    ("=", "<eq>"),
    ("<cr>", "<<cr>>"),
    ("\r", "<cr>"),
    ("<lf>", "<<lf>>"),
    ("\n", "<lf>"),
)

ARRAY_RULES: tuple[tuple[str, str], ...] = (
    ("<cm>", "<<cm>>"),
    (",", "<cm>"),
)

ARRAY_SEPARATOR = ","


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------

def _apply(text: str, rules: Sequence[tuple[str, str]]) -> str:
    for pattern, replacement in rules:
        text = text.replace(pattern, replacement)
    return text


def _inverse(rules: Sequence[tuple[str, str]]) -> tuple[tuple[str, str], ...]:
    """Build the decode rules for a list of (protect, substitute) rule pairs."""
    inverse: list[tuple[str, str]] = []
    for i in range(len(rules) - 2, -1, -2):
        (token, doubled), (char, _) = rules[i], rules[i + 1]
        inverse.append((token, char))
        inverse.append((doubled.replace(token, char), token))
    return tuple(inverse)


_SCALAR_DECODE = _inverse(SCALAR_RULES)
_ARRAY_DECODE = _inverse(ARRAY_RULES)


def escape(text: str) -> str:
    """Escape ``=``, CR and LF so *text* fits on one ``key=value`` line."""
    return _apply(text, SCALAR_RULES)


def unescape(text: str) -> str:
    return _apply(text, _SCALAR_DECODE)


def escape_array(items: Iterable[str]) -> str:
    """Escape and comma-join already formatted element strings."""
    return ARRAY_SEPARATOR.join(_apply(escape(item), ARRAY_RULES) for item in items)


def unescape_array(text: str) -> list[str]:
    """Split an encoded array into element strings.

    The empty string is one empty element, so ``[""]`` round trips and ``[]``
    does not; decode_array() reads it as ``[]`` for every kind except TEXT.
    """
    return [unescape(_apply(part, _ARRAY_DECODE)) for part in text.split(ARRAY_SEPARATOR)]


# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Kind:
    """One member of the closed set of storable value kinds."""

    name: str
    format: Callable[[Any], str]       # python value -> text, raises ValidationError
    parse: Callable[[str], Any]        # text -> python value, raises ValueError

    def __repr__(self) -> str:
        return f"Kind({self.name})"


_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?"
    r"|[+-]?(?:inf|infinity|nan)",
    re.IGNORECASE,
)
_FLOAT32_MAX = float(np.finfo(np.float32).max)


def _is_bool(value: Any) -> bool:
    return isinstance(value, (bool, np.bool_))


def _format_bool(value: Any) -> str:
    if not _is_bool(value):
        msg = f"expected bool, got {type(value).__name__}"
        raise ValidationError(msg)
    return "true" if value else "false"


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    msg = f"not a boolean: {text!r}"
    raise ValueError(msg)


def _int_codec(dtype: type[np.integer]) -> tuple[Callable[[Any], str], Callable[[str], int]]:
    info = np.iinfo(dtype)
    lo, hi = int(info.min), int(info.max)
    label = np.dtype(dtype).name

    def fmt(value: Any) -> str:
        if _is_bool(value) or not isinstance(value, (int, np.integer)):
            msg = f"expected {label}, got {type(value).__name__}"
            raise ValidationError(msg)
        number = int(value)
        if not lo <= number <= hi:
            msg = f"{number} out of range for {label} [{lo}, {hi}]"
            raise ValidationError(msg)
        return str(number)

    def parse(text: str) -> int:
        if not _INT_RE.fullmatch(text):
            msg = f"not an integer: {text!r}"
            raise ValueError(msg)
        number = int(text)
        if not lo <= number <= hi:
            msg = f"{number} out of range for {label}"
            raise ValueError(msg)
        return number

    return fmt, parse


def _check_real(value: Any, label: str) -> float:
    if _is_bool(value) or not isinstance(value, (int, float, np.integer, np.floating)):
        msg = f"expected {label}, got {type(value).__name__}"
        raise ValidationError(msg)
    return float(value)


def _format_float(value: Any) -> str:
    number = _check_real(value, "float32")
    if math.isfinite(number) and abs(number) > _FLOAT32_MAX:
        msg = f"{number!r} out of range for float32"
        raise ValidationError(msg)
    # numpy prints the shortest text that reads back to the same float32
    return str(np.float32(number))


def _parse_float(text: str) -> float:
    number = _parse_double(text)
    if math.isfinite(number) and abs(number) > _FLOAT32_MAX:
        msg = f"{text!r} out of range for float32"
        raise ValueError(msg)
    return float(np.float32(number))


def _format_double(value: Any) -> str:
    return repr(_check_real(value, "float64"))


def _parse_double(text: str) -> float:
    if not _FLOAT_RE.fullmatch(text):
        msg = f"not a number: {text!r}"
        raise ValueError(msg)
    return float(text)


def _format_text(value: Any) -> str:
    if not isinstance(value, str):
        msg = f"expected str, got {type(value).__name__}"
        raise ValidationError(msg)
    return value


BOOL = Kind("bool", _format_bool, _parse_bool)
BYTE = Kind("byte", *_int_codec(np.int8))
SHORT = Kind("short", *_int_codec(np.int16))
INT = Kind("int", *_int_codec(np.int32))
LONG = Kind("long", *_int_codec(np.int64))
FLOAT = Kind("float", _format_float, _parse_float)
DOUBLE = Kind("double", _format_double, _parse_double)
TEXT = Kind("text", _format_text, str)

KINDS: dict[str, Kind] = {k.name: k for k in (BOOL, BYTE, SHORT, INT, LONG, FLOAT, DOUBLE, TEXT)}

_NUMPY_KINDS: dict[type, Kind] = {
    np.bool_: BOOL,
    np.int8: BYTE,
    np.int16: SHORT,
    np.int32: INT,
    np.int64: LONG,
    np.float32: FLOAT,
    np.float64: DOUBLE,
}


def kind_named(name: str) -> Kind:
    """Look up a kind by name (``bool``, ``int``, ``text`` ...)."""
    try:
        return KINDS[name.lower()]
    except KeyError:
        msg = f"unknown kind {name!r}; expected one of {', '.join(KINDS)}"
        raise ValidationError(msg) from None


def infer_kind(value: Any) -> Kind:
    """Pick the kind for a python value: bool, int -> long, float -> double, str."""
    numpy_kind = _NUMPY_KINDS.get(type(value))
    if numpy_kind is not None:
        return numpy_kind
    if isinstance(value, bool):
        return BOOL
    if isinstance(value, int):
        return LONG
    if isinstance(value, float):
        return DOUBLE
    if isinstance(value, str):
        return TEXT
    msg = f"unsupported value type: {type(value).__name__}"
    raise ValidationError(msg)


def infer_array_kind(values: Sequence[Any]) -> Kind:
    """Kind of an array: numpy dtype if any, else the first element's kind."""
    if isinstance(values, np.ndarray):
        kind = _NUMPY_KINDS.get(values.dtype.type)
        if kind is None:
            msg = f"unsupported array dtype: {values.dtype}"
            raise ValidationError(msg)
        return kind
    if len(values) == 0:
        return TEXT
    return infer_kind(values[0])


# ---------------------------------------------------------------------------
# Typed encode / decode
# ---------------------------------------------------------------------------

def encode(value: Any, kind: Kind) -> str:
    return escape(kind.format(value))


def decode(raw: str, kind: Kind, key: str | None = None) -> Any:
    text = unescape(raw)
    try:
        return kind.parse(text)
    except ValueError as exc:
        raise FormatError(key, text, kind.name) from exc


def encode_array(values: Iterable[Any], kind: Kind) -> str:
    return escape_array(kind.format(v) for v in values)


def decode_array(raw: str, kind: Kind, key: str | None = None) -> list[Any]:
    if not raw and kind is not TEXT:
        return []
    out: list[Any] = []
    for text in unescape_array(raw):
        try:
            out.append(kind.parse(text))
        except ValueError as exc:
            raise FormatError(key, text, kind.name) from exc
    return out
