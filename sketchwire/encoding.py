"""Encode typed command parameters into wire arguments.

Every argument is sent as a byte string. Integers use their decimal text
form and floats use the shortest text form that round-trips, except for
infinities and NaN which are sent as `inf`, `-inf` and `nan`. Keys and
items given as `bytes` are passed through untouched.
"""
from __future__ import annotations

import itertools
import math
from typing import Iterable
from typing import NamedTuple
from typing import Sequence
from typing import Tuple
from typing import Union

from sketchwire.types import ArgumentList
from sketchwire.types import KeyT


def encode_int(value: int) -> bytes:
    """Encode an integer as decimal text.

    Raises:
        TypeError: if `value` is a `bool` or is not an integer.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f'Expected int but got {type(value).__name__}.')
    return str(value).encode('ascii')


def encode_float(value: float) -> bytes:
    """Encode a float as text understood by the server.

    Raises:
        TypeError: if `value` is not a real number.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f'Expected float but got {type(value).__name__}.')
    value = float(value)
    if math.isnan(value):
        return b'nan'
    if math.isinf(value):
        return b'inf' if value > 0 else b'-inf'
    return repr(value).encode('ascii')


def encode_key(key: KeyT) -> bytes:
    """Encode a key.

    `str` keys are UTF-8 encoded and `bytes` keys are returned unchanged.
    """
    if isinstance(key, bytes):
        return key
    if isinstance(key, str):
        return key.encode('utf-8')
    raise TypeError(
        f'Expected str or bytes key but got {type(key).__name__}.',
    )


class TextArgs(NamedTuple):
    """Items given as text."""

    values: Tuple[str, ...]

    def encode(self) -> list[bytes]:
        """Encode each item as UTF-8."""
        return [value.encode('utf-8') for value in self.values]


class BinaryArgs(NamedTuple):
    """Items given as raw bytes."""

    values: Tuple[bytes, ...]

    def encode(self) -> list[bytes]:
        """Return the items unchanged."""
        return list(self.values)


ItemArgs = Union[TextArgs, BinaryArgs]


def as_items(items: Sequence[str | bytes]) -> ItemArgs:
    """Tag a sequence of items as text or binary.

    This is the only place the item type is inspected. Everything after
    works on the tagged value.

    Raises:
        TypeError: if `items` mixes `str` and `bytes` or contains other
            types.
    """
    if all(isinstance(item, str) for item in items):
        return TextArgs(tuple(items))  # type: ignore[arg-type]
    if all(isinstance(item, bytes) for item in items):
        return BinaryArgs(tuple(items))  # type: ignore[arg-type]
    raise TypeError('Items must be all str or all bytes.')


def encode_items(items: Sequence[str | bytes] | ItemArgs) -> list[bytes]:
    """Encode items given as a sequence or an already tagged value."""
    if not isinstance(items, (TextArgs, BinaryArgs)):
        items = as_items(items)
    return items.encode()


def build_args(key: KeyT, *fragments: Iterable[bytes]) -> ArgumentList:
    """Assemble the ordered argument list for a command.

    Args:
        key: Key the command targets. Always the first argument.
        fragments: Already encoded argument fragments, concatenated in
            the order given.

    Returns:
        Immutable argument list.
    """
    return (encode_key(key), *itertools.chain.from_iterable(fragments))
