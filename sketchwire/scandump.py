"""Resumable scan-dump and restore of Cuckoo filters.

A filter is dumped with repeated `CF.SCANDUMP key cursor` calls. The
first call uses cursor `0` and each reply carries the cursor for the next
call. A returned cursor of `0` after the first call means there are no
further chunks. Replaying the chunks with `CF.LOADCHUNK` in the order
they were produced rebuilds the filter.

Example:
    ```python
    from sketchwire.client import SketchClient

    with SketchClient.from_address('localhost', 6379) as client:
        chunks = list(client.cf_scandump_iter('src'))
        client.cf_load_chunks('dst', chunks)
    ```
"""
from __future__ import annotations

import dataclasses
import logging
import struct
from typing import BinaryIO
from typing import Callable
from typing import Generator
from typing import Iterable
from typing import Iterator
from typing import Union

from sketchwire.exceptions import ProtocolViolationError
from sketchwire.types import DumpChunk

DUMP_FILE_MAGIC = b'SKWDUMP1'
CHUNK_HEADER_FORMAT = '!qQ'
CHUNK_HEADER_LENGTH = struct.calcsize(CHUNK_HEADER_FORMAT)

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class NotStarted:
    """No chunk has been requested yet."""


@dataclasses.dataclass(frozen=True)
class InProgress:
    """At least one chunk was returned and more may follow."""

    cursor: int


@dataclasses.dataclass(frozen=True)
class Done:
    """The dump is exhausted."""


ScanState = Union[NotStarted, InProgress, Done]


class ScanDumpIterator(Iterator[DumpChunk]):
    """Lazy, single-pass iterator over the chunks of a Cuckoo filter.

    The iterator tracks whether the first request has been made separately
    from the cursor value because `0` is both the initial request cursor
    and the terminal reply cursor. The first reply is always yielded, even
    when its cursor is already `0`. Any later reply with cursor `0` ends
    the iteration and is not yielded.

    The iterator is not restartable; create a new one to dump again.

    Args:
        fetch: Callable issuing `CF.SCANDUMP` for a cursor and returning
            the decoded chunk.
    """

    def __init__(self, fetch: Callable[[int], DumpChunk]) -> None:
        self._fetch = fetch
        self._state: ScanState = NotStarted()

    def __iter__(self) -> ScanDumpIterator:
        return self

    def __next__(self) -> DumpChunk:
        state = self._state
        if isinstance(state, Done):
            raise StopIteration

        if isinstance(state, NotStarted):
            chunk = self._fetch(0)
            self._state = InProgress(chunk.cursor) if chunk.cursor else Done()
            return chunk

        chunk = self._fetch(state.cursor)
        if chunk.cursor == 0:
            self._state = Done()
            raise StopIteration
        self._state = InProgress(chunk.cursor)
        return chunk

    @property
    def state(self) -> ScanState:
        """Current state of the iterator."""
        return self._state

    @property
    def exhausted(self) -> bool:
        """The iterator will not yield any more chunks."""
        return isinstance(self._state, Done)


def load_chunks(
    load: Callable[[DumpChunk], None],
    chunks: Iterable[DumpChunk],
) -> int:
    """Replay chunks in order.

    Warning:
        Restoring is not idempotent. Replaying a chunk twice or out of
        order leaves the filter in an undefined state.

    Args:
        load: Callable issuing `CF.LOADCHUNK` for one chunk.
        chunks: Chunks in the order they were produced by the dump.

    Returns:
        Number of chunks loaded.
    """
    count = 0
    for chunk in chunks:
        load(chunk)
        count += 1
    logger.debug(f'Loaded {count} chunk(s)')
    return count


def write_chunks(chunks: Iterable[DumpChunk], fp: BinaryIO) -> int:
    """Write chunks to a binary stream.

    The stream starts with a magic header followed by one record per chunk:
    a fixed `(cursor, length)` header and then `length` bytes of data.

    Args:
        chunks: Chunks to write.
        fp: File-like bytes stream to write to.

    Returns:
        Number of chunks written.
    """
    fp.write(DUMP_FILE_MAGIC)
    count = 0
    for chunk in chunks:
        header = struct.pack(
            CHUNK_HEADER_FORMAT,
            chunk.cursor,
            len(chunk.data),
        )
        fp.write(header)
        fp.write(chunk.data)
        count += 1
    return count


def read_chunks(fp: BinaryIO) -> Generator[DumpChunk, None, None]:
    """Read chunks written by [`write_chunks()`][sketchwire.scandump.write_chunks].

    Args:
        fp: File-like bytes stream to read from.

    Yields:
        Chunks in the order they were written.

    Raises:
        ProtocolViolationError: if the stream does not start with the dump
            header or a record is truncated.
    """  # noqa: E501
    if fp.read(len(DUMP_FILE_MAGIC)) != DUMP_FILE_MAGIC:
        raise ProtocolViolationError('Stream is not a sketchwire dump file.')

    while True:
        header = fp.read(CHUNK_HEADER_LENGTH)
        if len(header) == 0:
            return
        if len(header) != CHUNK_HEADER_LENGTH:
            raise ProtocolViolationError('Truncated chunk header.')
        cursor, length = struct.unpack(CHUNK_HEADER_FORMAT, header)
        data = fp.read(length)
        if len(data) != length:
            raise ProtocolViolationError(
                f'Truncated chunk data: expected {length} bytes but '
                f'got {len(data)}.',
            )
        yield DumpChunk(cursor=cursor, data=data)
