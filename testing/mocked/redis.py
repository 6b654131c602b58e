"""Mocked Redis server with the probabilistic data structure commands.

The sketches are exact (no false positives) which keeps the expected
results in tests deterministic. Replies use the same shapes as redis-py:
status replies and bulk strings are `bytes`, integers are `int`, arrays
are `list`, and error replies are `redis.ResponseError` instances.
"""
from __future__ import annotations

import dataclasses
import json
import math
import struct
from typing import Any
from typing import Callable
from typing import Sequence

import redis

OK = b'OK'

Reply = Any


class _CommandError(Exception):
    pass


@dataclasses.dataclass
class _Bloom:
    capacity: int
    error_rate: float
    expansion: int = 2
    non_scaling: bool = False
    items: set[bytes] = dataclasses.field(default_factory=set)


@dataclasses.dataclass
class _Cuckoo:
    capacity: int
    bucket_size: int = 2
    max_iterations: int = 20
    expansion: int = 1
    deleted: int = 0
    items: dict[bytes, int] = dataclasses.field(default_factory=dict)

    def inserted(self) -> int:
        return sum(self.items.values())

    def to_bytes(self) -> bytes:
        return json.dumps(
            {
                'capacity': self.capacity,
                'bucket_size': self.bucket_size,
                'max_iterations': self.max_iterations,
                'expansion': self.expansion,
                'deleted': self.deleted,
                'items': {k.hex(): v for k, v in self.items.items()},
            },
        ).encode()

    @classmethod
    def from_bytes(cls, data: bytes) -> _Cuckoo:
        state = json.loads(data)
        items = {bytes.fromhex(k): v for k, v in state.pop('items').items()}
        return cls(items=items, **state)


@dataclasses.dataclass
class _PendingLoad:
    expected: int
    next_cursor: int = 2
    buffer: bytes = b''


@dataclasses.dataclass
class _CMS:
    width: int
    depth: int
    counts: dict[bytes, int] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class _TopK:
    k: int
    width: int
    depth: int
    decay: float
    counts: dict[bytes, int] = dataclasses.field(default_factory=dict)

    def top(self) -> list[bytes]:
        ranked = sorted(self.counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return [item for item, _ in ranked[: self.k]]


@dataclasses.dataclass
class _TDigest:
    compression: int
    merged: list[float] = dataclasses.field(default_factory=list)
    unmerged: list[float] = dataclasses.field(default_factory=list)

    def values(self) -> list[float]:
        return sorted(self.merged + self.unmerged)


def _float_reply(value: float) -> bytes:
    if math.isnan(value):
        return b'nan'
    if math.isinf(value):
        return b'inf' if value > 0 else b'-inf'
    return repr(value).encode()


class MockSketchServer:
    """In-memory server implementing the sketch commands.

    The server can be used directly as a
    [`Channel`][sketchwire.channel.Channel] or wrapped by
    [`MockStrictRedis`][testing.mocked.redis.MockStrictRedis].

    Args:
        chunk_size: Maximum data size of each `CF.SCANDUMP` chunk.
    """

    def __init__(self, chunk_size: int = 64) -> None:
        self.chunk_size = chunk_size
        self.data: dict[bytes, Any] = {}
        self.pending_loads: dict[bytes, _PendingLoad] = {}
        self.commands: list[tuple[str, tuple[bytes, ...]]] = []
        self.closed = False
        self._handlers: dict[str, Callable[[list[bytes]], Reply]] = {
            'DEL': self._del,
            'BF.RESERVE': self._bf_reserve,
            'BF.ADD': self._bf_add,
            'BF.MADD': self._bf_madd,
            'BF.EXISTS': self._bf_exists,
            'BF.MEXISTS': self._bf_mexists,
            'BF.INSERT': self._bf_insert,
            'BF.INFO': self._bf_info,
            'CF.RESERVE': self._cf_reserve,
            'CF.ADD': self._cf_add,
            'CF.ADDNX': self._cf_addnx,
            'CF.INSERT': self._cf_insert,
            'CF.INSERTNX': self._cf_insertnx,
            'CF.EXISTS': self._cf_exists,
            'CF.DEL': self._cf_del,
            'CF.COUNT': self._cf_count,
            'CF.SCANDUMP': self._cf_scandump,
            'CF.LOADCHUNK': self._cf_loadchunk,
            'CF.INFO': self._cf_info,
            'CMS.INITBYDIM': self._cms_initbydim,
            'CMS.INITBYPROB': self._cms_initbyprob,
            'CMS.INCRBY': self._cms_incrby,
            'CMS.QUERY': self._cms_query,
            'CMS.MERGE': self._cms_merge,
            'CMS.INFO': self._cms_info,
            'TOPK.RESERVE': self._topk_reserve,
            'TOPK.ADD': self._topk_add,
            'TOPK.INCRBY': self._topk_incrby,
            'TOPK.QUERY': self._topk_query,
            'TOPK.COUNT': self._topk_count,
            'TOPK.LIST': self._topk_list,
            'TOPK.INFO': self._topk_info,
            'TDIGEST.CREATE': self._tdigest_create,
            'TDIGEST.RESET': self._tdigest_reset,
            'TDIGEST.ADD': self._tdigest_add,
            'TDIGEST.MERGE': self._tdigest_merge,
            'TDIGEST.INFO': self._tdigest_info,
            'TDIGEST.CDF': self._tdigest_cdf,
            'TDIGEST.QUANTILE': self._tdigest_quantile,
            'TDIGEST.MIN': self._tdigest_min,
            'TDIGEST.MAX': self._tdigest_max,
        }

    def close(self) -> None:
        """Mark the server as closed."""
        self.closed = True

    def execute(self, command: str, args: Sequence[bytes]) -> Reply:
        """Execute a command and return the reply or error instance."""
        self.commands.append((command, tuple(args)))
        handler = self._handlers.get(command)
        if handler is None:
            return redis.ResponseError(f"ERR unknown command '{command}'")
        try:
            return handler(list(args))
        except _CommandError as e:
            return redis.ResponseError(str(e))

    def _get(self, key: bytes, kind: type[Any], missing: str) -> Any:
        value = self.data.get(key)
        if value is None:
            raise _CommandError(missing)
        if not isinstance(value, kind):
            raise _CommandError(
                'WRONGTYPE Operation against a key holding the wrong kind '
                'of value',
            )
        return value

    def _del(self, args: list[bytes]) -> Reply:
        return int(self.data.pop(args[0], None) is not None)

    # Bloom

    def _bf_reserve(self, args: list[bytes]) -> Reply:
        key, error_rate, capacity, *rest = args
        if key in self.data:
            raise _CommandError('ERR item exists')
        bloom = _Bloom(capacity=int(capacity), error_rate=float(error_rate))
        self._bf_params(bloom, rest)
        self.data[key] = bloom
        return OK

    def _bf_params(self, bloom: _Bloom, args: list[bytes]) -> None:
        i = 0
        while i < len(args):
            if args[i] == b'EXPANSION':
                bloom.expansion = int(args[i + 1])
                i += 2
            elif args[i] == b'NONSCALING':
                bloom.non_scaling = True
                i += 1
            else:
                raise _CommandError('ERR syntax error')

    def _bf_get_or_create(self, key: bytes) -> _Bloom:
        if key not in self.data:
            self.data[key] = _Bloom(capacity=100, error_rate=0.01)
        return self._get(key, _Bloom, 'ERR not found')

    def _bf_add_items(self, bloom: _Bloom, items: list[bytes]) -> list[Reply]:
        replies: list[Reply] = []
        for item in items:
            if (
                bloom.non_scaling
                and item not in bloom.items
                and len(bloom.items) >= bloom.capacity
            ):
                replies.append(
                    redis.ResponseError('ERR non scaling filter is full'),
                )
                break
            replies.append(int(item not in bloom.items))
            bloom.items.add(item)
        return replies

    def _bf_add(self, args: list[bytes]) -> Reply:
        key, item = args
        reply = self._bf_add_items(self._bf_get_or_create(key), [item])[0]
        if isinstance(reply, Exception):
            raise _CommandError(str(reply))
        return reply

    def _bf_madd(self, args: list[bytes]) -> Reply:
        key, *items = args
        return self._bf_add_items(self._bf_get_or_create(key), items)

    def _bf_exists(self, args: list[bytes]) -> Reply:
        key, item = args
        if key not in self.data:
            return 0
        return int(item in self._get(key, _Bloom, 'ERR not found').items)

    def _bf_mexists(self, args: list[bytes]) -> Reply:
        key, *items = args
        if key not in self.data:
            return [0 for _ in items]
        bloom = self._get(key, _Bloom, 'ERR not found')
        return [int(item in bloom.items) for item in items]

    def _bf_insert(self, args: list[bytes]) -> Reply:
        key = args[0]
        index = args.index(b'ITEMS')
        options, items = args[1:index], args[index + 1 :]
        capacity, error_rate, no_create = None, None, False
        params: list[bytes] = []
        i = 0
        while i < len(options):
            if options[i] == b'CAPACITY':
                capacity = int(options[i + 1])
                i += 2
            elif options[i] == b'ERROR':
                error_rate = float(options[i + 1])
                i += 2
            elif options[i] == b'NOCREATE':
                no_create = True
                i += 1
            elif options[i] == b'EXPANSION':
                params.extend(options[i : i + 2])
                i += 2
            else:
                params.append(options[i])
                i += 1
        if no_create and (capacity is not None or error_rate is not None):
            raise _CommandError(
                'ERR cannot specify NOCREATE together with CAPACITY or ERROR',
            )
        if key not in self.data:
            if no_create:
                raise _CommandError('ERR not found')
            bloom = _Bloom(
                capacity=capacity if capacity is not None else 100,
                error_rate=error_rate if error_rate is not None else 0.01,
            )
            self._bf_params(bloom, params)
            self.data[key] = bloom
        bloom = self._get(key, _Bloom, 'ERR not found')
        return self._bf_add_items(bloom, items)

    def _bf_info(self, args: list[bytes]) -> Reply:
        bloom = self._get(args[0], _Bloom, 'ERR not found')
        return [
            b'Capacity',
            bloom.capacity,
            b'Size',
            bloom.capacity * 2,
            b'Number of filters',
            1,
            b'Number of items inserted',
            len(bloom.items),
            b'Expansion rate',
            None if bloom.non_scaling else bloom.expansion,
        ]

    # Cuckoo

    def _cf_reserve(self, args: list[bytes]) -> Reply:
        key, capacity, *rest = args
        if key in self.data or key in self.pending_loads:
            raise _CommandError('ERR item exists')
        cuckoo = _Cuckoo(capacity=int(capacity))
        for name, value in zip(rest[::2], rest[1::2]):
            if name == b'BUCKETSIZE':
                cuckoo.bucket_size = int(value)
            elif name == b'MAXITERATIONS':
                cuckoo.max_iterations = int(value)
            elif name == b'EXPANSION':
                cuckoo.expansion = int(value)
            else:
                raise _CommandError('ERR syntax error')
        self.data[key] = cuckoo
        return OK

    def _cf_get_or_create(self, key: bytes) -> _Cuckoo:
        if key not in self.data:
            self.data[key] = _Cuckoo(capacity=1024)
        return self._get(key, _Cuckoo, 'ERR not found')

    def _cf_add(self, args: list[bytes]) -> Reply:
        key, item = args
        cuckoo = self._cf_get_or_create(key)
        cuckoo.items[item] = cuckoo.items.get(item, 0) + 1
        return 1

    def _cf_addnx(self, args: list[bytes]) -> Reply:
        key, item = args
        cuckoo = self._cf_get_or_create(key)
        if item in cuckoo.items:
            return 0
        cuckoo.items[item] = 1
        return 1

    def _cf_insert_common(self, args: list[bytes], nx: bool) -> Reply:
        key = args[0]
        index = args.index(b'ITEMS')
        options, items = args[1:index], args[index + 1 :]
        capacity = None
        no_create = False
        i = 0
        while i < len(options):
            if options[i] == b'CAPACITY':
                capacity = int(options[i + 1])
                i += 2
            elif options[i] == b'NOCREATE':
                no_create = True
                i += 1
            else:
                raise _CommandError('ERR syntax error')
        if key not in self.data:
            if no_create:
                raise _CommandError('ERR not found')
            self.data[key] = _Cuckoo(
                capacity=capacity if capacity is not None else 1024,
            )
        cuckoo = self._get(key, _Cuckoo, 'ERR not found')
        replies = []
        for item in items:
            if nx and item in cuckoo.items:
                replies.append(0)
                continue
            cuckoo.items[item] = cuckoo.items.get(item, 0) + 1
            replies.append(1)
        return replies

    def _cf_insert(self, args: list[bytes]) -> Reply:
        return self._cf_insert_common(args, nx=False)

    def _cf_insertnx(self, args: list[bytes]) -> Reply:
        return self._cf_insert_common(args, nx=True)

    def _cf_exists(self, args: list[bytes]) -> Reply:
        key, item = args
        if key not in self.data:
            return 0
        return int(item in self._get(key, _Cuckoo, 'ERR not found').items)

    def _cf_del(self, args: list[bytes]) -> Reply:
        key, item = args
        cuckoo = self._get(key, _Cuckoo, 'Not found')
        if item not in cuckoo.items:
            return 0
        cuckoo.items[item] -= 1
        if cuckoo.items[item] == 0:
            del cuckoo.items[item]
        cuckoo.deleted += 1
        return 1

    def _cf_count(self, args: list[bytes]) -> Reply:
        key, item = args
        if key not in self.data:
            return 0
        return self._get(key, _Cuckoo, 'ERR not found').items.get(item, 0)

    def _cf_scandump(self, args: list[bytes]) -> Reply:
        key, cursor_arg = args
        cuckoo = self._get(key, _Cuckoo, 'ERR not found')
        cursor = int(cursor_arg)
        body = cuckoo.to_bytes()
        if cursor == 0:
            return [1, struct.pack('!Q', len(body))]
        offset = (cursor - 1) * self.chunk_size
        if offset >= len(body):
            return [0, None]
        return [cursor + 1, body[offset : offset + self.chunk_size]]

    def _cf_loadchunk(self, args: list[bytes]) -> Reply:
        key, cursor_arg, data = args
        cursor = int(cursor_arg)
        if cursor == 1:
            if key in self.data:
                raise _CommandError('ERR item exists')
            (expected,) = struct.unpack('!Q', data)
            self.pending_loads[key] = _PendingLoad(expected=expected)
            return OK
        pending = self.pending_loads.get(key)
        if pending is None or cursor != pending.next_cursor:
            raise _CommandError('ERR received bad data')
        pending.buffer += data
        pending.next_cursor += 1
        if len(pending.buffer) >= pending.expected:
            self.data[key] = _Cuckoo.from_bytes(pending.buffer)
            del self.pending_loads[key]
        return OK

    def _cf_info(self, args: list[bytes]) -> Reply:
        cuckoo = self._get(args[0], _Cuckoo, 'ERR not found')
        buckets = max(1, cuckoo.capacity // cuckoo.bucket_size)
        return [
            b'Size',
            buckets * cuckoo.bucket_size + 8,
            b'Number of buckets',
            buckets,
            b'Number of filters',
            1,
            b'Number of items inserted',
            cuckoo.inserted(),
            b'Number of items deleted',
            cuckoo.deleted,
            b'Bucket size',
            cuckoo.bucket_size,
            b'Expansion rate',
            cuckoo.expansion,
            b'Max iterations',
            cuckoo.max_iterations,
        ]

    # Count-Min-Sketch

    def _cms_new(self, key: bytes, width: int, depth: int) -> Reply:
        if key in self.data:
            raise _CommandError('CMS: key already exists')
        self.data[key] = _CMS(width=width, depth=depth)
        return OK

    def _cms_initbydim(self, args: list[bytes]) -> Reply:
        key, width, depth = args
        return self._cms_new(key, int(width), int(depth))

    def _cms_initbyprob(self, args: list[bytes]) -> Reply:
        key, error, probability = args
        width = math.ceil(2 / float(error))
        depth = math.ceil(math.log10(float(probability)) / math.log10(0.5))
        return self._cms_new(key, width, depth)

    def _cms_get(self, key: bytes) -> _CMS:
        return self._get(key, _CMS, 'CMS: key does not exist')

    def _cms_incrby(self, args: list[bytes]) -> Reply:
        key, *pairs = args
        cms = self._cms_get(key)
        counts = []
        for item, increment in zip(pairs[::2], pairs[1::2]):
            cms.counts[item] = cms.counts.get(item, 0) + int(increment)
            counts.append(cms.counts[item])
        return counts

    def _cms_query(self, args: list[bytes]) -> Reply:
        key, *items = args
        cms = self._cms_get(key)
        return [cms.counts.get(item, 0) for item in items]

    def _cms_merge(self, args: list[bytes]) -> Reply:
        dest = self._cms_get(args[0])
        numkeys = int(args[1])
        sources = [self._cms_get(key) for key in args[2 : 2 + numkeys]]
        rest = args[2 + numkeys :]
        if len(rest) > 0:
            if rest[0] != b'WEIGHTS' or len(rest) != numkeys + 1:
                raise _CommandError('ERR syntax error')
            weights = [int(w) for w in rest[1:]]
        else:
            weights = [1] * numkeys
        for source, weight in zip(sources, weights):
            if (source.width, source.depth) != (dest.width, dest.depth):
                raise _CommandError('CMS: width/depth is not equal')
            for item, count in source.counts.items():
                dest.counts[item] = dest.counts.get(item, 0) + weight * count
        return OK

    def _cms_info(self, args: list[bytes]) -> Reply:
        cms = self._cms_get(args[0])
        return [
            b'width',
            cms.width,
            b'depth',
            cms.depth,
            b'count',
            sum(cms.counts.values()),
        ]

    # Top-K

    def _topk_get(self, key: bytes) -> _TopK:
        return self._get(key, _TopK, 'TopK: key does not exist')

    def _topk_reserve(self, args: list[bytes]) -> Reply:
        key, k, width, depth, decay = args
        if key in self.data:
            raise _CommandError('TopK: key already exists')
        self.data[key] = _TopK(int(k), int(width), int(depth), float(decay))
        return OK

    def _topk_incr(self, topk: _TopK, item: bytes, increment: int) -> Reply:
        before = topk.top()
        topk.counts[item] = topk.counts.get(item, 0) + increment
        expelled = [i for i in before if i not in topk.top()]
        return expelled[0] if expelled else None

    def _topk_add(self, args: list[bytes]) -> Reply:
        key, *items = args
        topk = self._topk_get(key)
        return [self._topk_incr(topk, item, 1) for item in items]

    def _topk_incrby(self, args: list[bytes]) -> Reply:
        key, *pairs = args
        topk = self._topk_get(key)
        return [
            self._topk_incr(topk, item, int(increment))
            for item, increment in zip(pairs[::2], pairs[1::2])
        ]

    def _topk_query(self, args: list[bytes]) -> Reply:
        key, *items = args
        top = self._topk_get(key).top()
        return [int(item in top) for item in items]

    def _topk_count(self, args: list[bytes]) -> Reply:
        key, *items = args
        topk = self._topk_get(key)
        return [topk.counts.get(item, 0) for item in items]

    def _topk_list(self, args: list[bytes]) -> Reply:
        return self._topk_get(args[0]).top()

    def _topk_info(self, args: list[bytes]) -> Reply:
        topk = self._topk_get(args[0])
        return [
            b'k',
            topk.k,
            b'width',
            topk.width,
            b'depth',
            topk.depth,
            b'decay',
            repr(topk.decay).encode(),
        ]

    # T-Digest

    def _tdigest_get(self, key: bytes) -> _TDigest:
        return self._get(key, _TDigest, 'ERR T-Digest: key does not exist')

    def _tdigest_create(self, args: list[bytes]) -> Reply:
        key, keyword, compression = args
        if keyword != b'COMPRESSION':
            raise _CommandError('ERR syntax error')
        if key in self.data:
            raise _CommandError('ERR T-Digest: key already exists')
        self.data[key] = _TDigest(compression=int(compression))
        return OK

    def _tdigest_reset(self, args: list[bytes]) -> Reply:
        tdigest = self._tdigest_get(args[0])
        tdigest.merged.clear()
        tdigest.unmerged.clear()
        return OK

    def _tdigest_add(self, args: list[bytes]) -> Reply:
        if len(args) < 2:  # noqa: PLR2004
            raise _CommandError(
                "ERR wrong number of arguments for 'TDIGEST.ADD' command",
            )
        key, *values = args
        self._tdigest_get(key).unmerged.extend(float(v) for v in values)
        return OK

    def _tdigest_merge(self, args: list[bytes]) -> Reply:
        dest = self._tdigest_get(args[0])
        numkeys = int(args[1])
        sources = [self._tdigest_get(k) for k in args[2 : 2 + numkeys]]
        dest.merged.extend(dest.unmerged)
        dest.unmerged.clear()
        for source in sources:
            dest.unmerged.extend(source.merged + source.unmerged)
        return OK

    def _tdigest_info(self, args: list[bytes]) -> Reply:
        tdigest = self._tdigest_get(args[0])
        return [
            b'Compression',
            tdigest.compression,
            b'Capacity',
            6 * tdigest.compression + 10,
            b'Merged nodes',
            len(tdigest.merged),
            b'Unmerged nodes',
            len(tdigest.unmerged),
        ]

    def _tdigest_cdf(self, args: list[bytes]) -> Reply:
        key, *points = args
        values = self._tdigest_get(key).values()
        replies = []
        for point in points:
            if len(values) == 0:
                replies.append(b'nan')
            else:
                below = sum(1 for v in values if v <= float(point))
                replies.append(_float_reply(below / len(values)))
        return replies

    def _tdigest_quantile(self, args: list[bytes]) -> Reply:
        key, *quantiles = args
        values = self._tdigest_get(key).values()
        replies = []
        for quantile in quantiles:
            if len(values) == 0:
                replies.append(b'nan')
            else:
                last = len(values) - 1
                index = min(int(float(quantile) * len(values)), last)
                replies.append(_float_reply(values[index]))
        return replies

    def _tdigest_min(self, args: list[bytes]) -> Reply:
        values = self._tdigest_get(args[0]).values()
        return _float_reply(values[0]) if values else b'nan'

    def _tdigest_max(self, args: list[bytes]) -> Reply:
        values = self._tdigest_get(args[0]).values()
        return _float_reply(values[-1]) if values else b'nan'


class MockStrictRedis:
    """Mock StrictRedis backed by a shared [`MockSketchServer`][testing.mocked.redis.MockSketchServer].

    Like redis-py, a top-level error reply is raised as
    `redis.ResponseError` while error elements inside array replies are
    returned in place.
    """  # noqa: E501

    def __init__(self, server: MockSketchServer, *args, **kwargs):
        self.server = server
        self.kwargs = kwargs
        self.closed = False

    def close(self) -> None:
        """Close the client."""
        self.closed = True

    def execute_command(self, *args: Any) -> Reply:
        """Execute a command on the shared server."""
        command, *command_args = args
        reply = self.server.execute(command, command_args)
        if isinstance(reply, redis.ResponseError):
            raise reply
        return reply
