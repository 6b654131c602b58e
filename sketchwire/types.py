"""Common types used across sketchwire."""
from __future__ import annotations

from typing import Dict
from typing import NamedTuple
from typing import Tuple
from typing import Union

ArgumentList = Tuple[bytes, ...]
"""Ordered, binary-safe command arguments (command token excluded)."""

KeyT = Union[str, bytes]
"""Key of a sketch on the server."""

InfoValue = Union[int, float, str, None]
InfoMap = Dict[str, InfoValue]
"""Field name to value mapping decoded from an `*.INFO` reply."""


class DumpChunk(NamedTuple):
    """Chunk of a Cuckoo filter returned by `CF.SCANDUMP`.

    Attributes:
        cursor: Cursor returned by the server alongside `data`. A value of
            `0` means the server has no further chunks.
        data: Opaque serialized fragment of the filter.
    """

    cursor: int
    data: bytes
