"""Decode raw server replies into typed results.

Replies arrive in the shape produced by the channel: status replies and
bulk strings as `bytes` (or `str`), integers as `int`, arrays as `list`,
nil as `None`, and error elements embedded in an array as `Exception`
instances. Top-level error replies never reach these functions; the
dispatcher converts them into
[`ProtocolRejectionError`][sketchwire.exceptions.ProtocolRejectionError].
"""
from __future__ import annotations

import enum
import math
import re
from typing import Any

from sketchwire.exceptions import ProtocolRejectionError
from sketchwire.exceptions import ProtocolViolationError
from sketchwire.exceptions import ServerDataError
from sketchwire.types import DumpChunk
from sketchwire.types import InfoMap
from sketchwire.types import InfoValue

_INT_RE = re.compile(r'^[+-]?\d+$')
_FLOAT_RE = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')
_SPECIAL_FLOATS = {
    'inf': math.inf,
    '+inf': math.inf,
    '-inf': -math.inf,
    'nan': math.nan,
}


class BooleanPolicy(enum.Enum):
    """Rule mapping an integer reply to a boolean.

    Bloom commands report success with any non-zero integer. Cuckoo
    commands may reply with negative sentinels for items that could not
    be inserted, so only positive integers count as `True`.
    """

    NONZERO = 'nonzero'
    POSITIVE = 'positive'

    def __call__(self, value: int) -> bool:
        if self is BooleanPolicy.POSITIVE:
            return value > 0
        return value != 0


def _text(reply: Any) -> str:
    if isinstance(reply, bytes):
        return reply.decode('utf-8')
    if isinstance(reply, str):
        return reply
    raise ProtocolViolationError(
        f'Expected a string reply but got {type(reply).__name__}.',
    )


def _check_embedded(reply: Any) -> None:
    if isinstance(reply, Exception):
        raise ServerDataError(str(reply)) from reply


def _check_array(reply: Any) -> list[Any]:
    if not isinstance(reply, (list, tuple)):
        raise ProtocolViolationError(
            f'Expected an array reply but got {type(reply).__name__}.',
        )
    return list(reply)


def _values(reply: Any) -> list[Any]:
    # Error elements mark items the server failed to process.
    return [
        value
        for value in _check_array(reply)
        if not isinstance(value, Exception)
    ]


def decode_status(reply: Any) -> None:
    """Check that a status reply is `OK`.

    Raises:
        ProtocolRejectionError: if the status is anything else. The
            status text is kept verbatim.
    """
    _check_embedded(reply)
    status = _text(reply)
    if status != 'OK':
        raise ProtocolRejectionError(status)


def decode_int(reply: Any) -> int:
    """Decode an integer reply.

    Raises:
        ServerDataError: if the reply is an error element.
        ProtocolViolationError: if the reply is not an integer.
    """
    _check_embedded(reply)
    if isinstance(reply, bool):
        return int(reply)
    if isinstance(reply, int):
        return reply
    if isinstance(reply, (bytes, str)):
        text = _text(reply)
        if _INT_RE.fullmatch(text) is not None:
            return int(text)
    raise ProtocolViolationError(
        f'Expected an integer reply but got {reply!r}.',
    )


def decode_bool(reply: Any, policy: BooleanPolicy) -> bool:
    """Decode an integer reply into a boolean using `policy`."""
    return policy(decode_int(reply))


def decode_int_list(reply: Any) -> list[int]:
    """Decode an array of integers.

    Error elements embedded in the array are dropped, so the result may be
    shorter than the number of requested items.
    """
    return [decode_int(value) for value in _values(reply)]


def decode_leading_int(reply: Any) -> int:
    """Decode the first element of an array reply for a single item.

    Raises:
        ServerDataError: if the element is an error.
        ProtocolViolationError: if the array is empty.
    """
    values = _check_array(reply)
    if len(values) == 0:
        raise ProtocolViolationError('Expected a non-empty array reply.')
    return decode_int(values[0])


def decode_bool_list(reply: Any, policy: BooleanPolicy) -> list[bool]:
    """Decode an array of integers into booleans.

    Error elements embedded in the array mark items the server failed to
    process and are dropped, so the result may be shorter than the number
    of requested items. It is never longer.
    """
    return [decode_bool(value, policy) for value in _values(reply)]


def decode_float(reply: Any) -> float:
    """Decode a floating point reply.

    The canonical decimal text form is accepted along with the tokens
    `inf`, `+inf`, `-inf` and `nan`.

    Raises:
        ServerDataError: if the reply is an error element.
        ProtocolViolationError: if the reply is not a valid float.
    """
    _check_embedded(reply)
    if isinstance(reply, float):
        return reply
    if isinstance(reply, int) and not isinstance(reply, bool):
        return float(reply)
    text = _text(reply)
    special = _SPECIAL_FLOATS.get(text)
    if special is not None:
        return special
    if _FLOAT_RE.fullmatch(text) is None:
        raise ProtocolViolationError(f'Invalid float token {text!r}.')
    return float(text)


def decode_float_list(reply: Any) -> list[float]:
    """Decode an array of floats, dropping embedded error elements."""
    return [decode_float(value) for value in _values(reply)]


def decode_str_list(reply: Any) -> list[str | None]:
    """Decode an array of bulk strings, keeping nil elements as `None`.

    Embedded error elements are dropped.
    """
    return [
        None if value is None else _text(value) for value in _values(reply)
    ]


def _info_value(value: Any) -> InfoValue:
    _check_embedded(value)
    if value is None or isinstance(value, (int, float)):
        return value
    text = _text(value)
    if _INT_RE.fullmatch(text) is not None:
        return int(text)
    try:
        return decode_float(text)
    except ProtocolViolationError:
        return text


def decode_info_map(reply: Any) -> InfoMap:
    """Decode an `*.INFO` reply into a field to value mapping.

    The reply is a flat array of alternating field names and values.
    Integer values stay integers, numeric text is parsed as an integer or
    float, and anything else is kept as a string.

    Raises:
        ProtocolViolationError: if the array has an odd length.
    """
    values = _check_array(reply)
    if len(values) % 2 != 0:
        raise ProtocolViolationError(
            f'Info reply has an odd number of elements ({len(values)}).',
        )
    return {
        _text(values[i]): _info_value(values[i + 1])
        for i in range(0, len(values), 2)
    }


def decode_dump_chunk(reply: Any) -> DumpChunk:
    """Decode a `CF.SCANDUMP` reply into a positional (cursor, data) pair.

    Raises:
        ProtocolViolationError: if the reply is not a two element array.
    """
    values = _check_array(reply)
    if len(values) != 2:  # noqa: PLR2004
        raise ProtocolViolationError(
            f'Scan dump reply must have 2 elements but got {len(values)}.',
        )
    cursor, data = values
    _check_embedded(data)
    if data is None:
        data = b''
    elif isinstance(data, str):
        data = data.encode('utf-8')
    elif not isinstance(data, bytes):
        raise ProtocolViolationError(
            f'Scan dump data must be bytes but got {type(data).__name__}.',
        )
    return DumpChunk(cursor=decode_int(cursor), data=data)
