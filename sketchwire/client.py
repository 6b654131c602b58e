"""Client for probabilistic data structure commands."""
from __future__ import annotations

import functools
import sys
from types import TracebackType
from typing import Any
from typing import Iterable
from typing import Mapping
from typing import Sequence
from typing import Union

if sys.version_info >= (3, 11):  # pragma: >=3.11 cover
    from typing import Self
else:  # pragma: <3.11 cover
    from typing_extensions import Self

from sketchwire.channel import Channel
from sketchwire.channel import RedisChannel
from sketchwire.commands import BloomCommand
from sketchwire.commands import CMSCommand
from sketchwire.commands import CuckooCommand
from sketchwire.commands import KeyCommand
from sketchwire.commands import Keyword
from sketchwire.commands import TDigestCommand
from sketchwire.commands import TopKCommand
from sketchwire.decoding import BooleanPolicy
from sketchwire.decoding import decode_bool
from sketchwire.decoding import decode_bool_list
from sketchwire.decoding import decode_dump_chunk
from sketchwire.decoding import decode_float
from sketchwire.decoding import decode_float_list
from sketchwire.decoding import decode_info_map
from sketchwire.decoding import decode_int
from sketchwire.decoding import decode_int_list
from sketchwire.decoding import decode_leading_int
from sketchwire.decoding import decode_status
from sketchwire.decoding import decode_str_list
from sketchwire.dispatch import Dispatcher
from sketchwire.encoding import build_args
from sketchwire.encoding import encode_float
from sketchwire.encoding import encode_int
from sketchwire.encoding import encode_items
from sketchwire.encoding import encode_key
from sketchwire.options import CuckooInsertOptions
from sketchwire.options import CuckooReserveOptions
from sketchwire.options import InsertOptions
from sketchwire.options import ReserveParams
from sketchwire.scandump import load_chunks
from sketchwire.scandump import ScanDumpIterator
from sketchwire.types import DumpChunk
from sketchwire.types import InfoMap
from sketchwire.types import KeyT

ItemT = Union[str, bytes]
"""Item added to or queried from a sketch (`str` or `bytes`)."""

_NONZERO = BooleanPolicy.NONZERO
_POSITIVE = BooleanPolicy.POSITIVE


def _increment_pairs(increments: Mapping[ItemT, int]) -> list[bytes]:
    items = encode_items(tuple(increments.keys()))
    pairs: list[bytes] = []
    for item, increment in zip(items, increments.values()):
        pairs.extend((item, encode_int(increment)))
    return pairs


class SketchClient:
    """Typed interface to Bloom, Cuckoo, Count-Min-Sketch, Top-K and T-Digest.

    Each method encodes one command, sends it over the channel and decodes
    the reply. Nothing is retried or cached by the client.

    Keys and items may be `str` or `bytes`. Text is UTF-8 encoded and bytes
    are sent unchanged. The items of a single call must be all `str` or all
    `bytes`.

    Example:
        ```python
        from sketchwire.client import SketchClient

        with SketchClient.from_address('localhost', 6379) as client:
            client.bf_reserve('users', 0.01, 1000)
            client.bf_add('users', 'alice')
            assert client.bf_exists('users', 'alice')
        ```

    Args:
        channel: Channel used to reach the server.
    """  # noqa: E501

    def __init__(self, channel: Channel) -> None:
        self.channel = channel
        self._dispatcher = Dispatcher(channel)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_traceback: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(channel={self.channel!r})'

    @classmethod
    def from_address(
        cls,
        hostname: str = 'localhost',
        port: int = 6379,
        **kwargs: Any,
    ) -> SketchClient:
        """Create a client connected to a Redis server.

        Args:
            hostname: Redis server hostname.
            port: Redis server port.
            kwargs: Extra keyword arguments passed to
                [`RedisChannel`][sketchwire.channel.RedisChannel].
        """
        return cls(RedisChannel(hostname, port, **kwargs))

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> SketchClient:
        """Create a new client from a configuration.

        Args:
            config: Configuration returned by `#!python .config()`.
        """
        return cls(RedisChannel.from_config(config))

    def config(self) -> dict[str, Any]:
        """Get the client configuration.

        Raises:
            TypeError: if the channel is not a
                [`RedisChannel`][sketchwire.channel.RedisChannel].
        """
        if not isinstance(self.channel, RedisChannel):
            raise TypeError(
                f'{type(self.channel).__name__} does not provide a '
                'configuration.',
            )
        return self.channel.config()

    def close(self) -> None:
        """Close the channel."""
        self.channel.close()

    def delete(self, key: KeyT) -> bool:
        """Delete a sketch of any type.

        Returns:
            If the key existed.
        """
        args = build_args(key)
        return self._dispatcher.execute(
            KeyCommand.DEL,
            args,
            functools.partial(decode_bool, policy=_NONZERO),
        )

    # Bloom filter

    def bf_reserve(
        self,
        key: KeyT,
        error_rate: float,
        capacity: int,
        params: ReserveParams | None = None,
    ) -> None:
        """Create an empty Bloom filter.

        Args:
            key: Name of the filter.
            error_rate: Desired false positive probability.
            capacity: Number of items the filter should hold.
            params: Optional scaling parameters.

        Raises:
            ProtocolRejectionError: if the key already exists.
        """
        args = build_args(
            key,
            (encode_float(error_rate), encode_int(capacity)),
            params.to_args() if params is not None else (),
        )
        self._dispatcher.execute(BloomCommand.RESERVE, args, decode_status)

    def bf_add(self, key: KeyT, item: ItemT) -> bool:
        """Add an item, creating the filter if needed.

        Returns:
            If the item was newly added.
        """
        args = build_args(key, encode_items((item,)))
        return self._dispatcher.execute(
            BloomCommand.ADD,
            args,
            functools.partial(decode_bool, policy=_NONZERO),
        )

    def bf_madd(self, key: KeyT, *items: ItemT) -> list[bool]:
        """Add items, creating the filter if needed.

        Returns:
            If each item was newly added.
        """
        args = build_args(key, encode_items(items))
        return self._dispatcher.execute(
            BloomCommand.MADD,
            args,
            functools.partial(decode_bool_list, policy=_NONZERO),
        )

    def bf_exists(self, key: KeyT, item: ItemT) -> bool:
        """Check if an item may exist in the filter.

        A missing filter is reported as `False`.
        """
        args = build_args(key, encode_items((item,)))
        return self._dispatcher.execute(
            BloomCommand.EXISTS,
            args,
            functools.partial(decode_bool, policy=_NONZERO),
        )

    def bf_mexists(self, key: KeyT, *items: ItemT) -> list[bool]:
        """Check if each item may exist in the filter."""
        args = build_args(key, encode_items(items))
        return self._dispatcher.execute(
            BloomCommand.MEXISTS,
            args,
            functools.partial(decode_bool_list, policy=_NONZERO),
        )

    def bf_insert(
        self,
        key: KeyT,
        *items: ItemT,
        options: InsertOptions | None = None,
        params: ReserveParams | None = None,
    ) -> list[bool]:
        """Add items, optionally controlling how the filter is created.

        Args:
            key: Name of the filter.
            items: Items to add.
            options: Creation options used if the filter does not exist.
            params: Scaling parameters used if the filter does not exist.

        Returns:
            If each item was newly added. If the server fails part way \
            through, the result only covers the items processed before the \
            failure and is shorter than `items`.
        """
        options = options if options is not None else InsertOptions()
        args = build_args(
            key,
            options.to_args(params),
            (Keyword.ITEMS.raw,),
            encode_items(items),
        )
        return self._dispatcher.execute(
            BloomCommand.INSERT,
            args,
            functools.partial(decode_bool_list, policy=_NONZERO),
        )

    def bf_info(self, key: KeyT) -> InfoMap:
        """Get information about a Bloom filter."""
        return self._dispatcher.execute(
            BloomCommand.INFO,
            build_args(key),
            decode_info_map,
        )

    # Cuckoo filter

    def cf_reserve(
        self,
        key: KeyT,
        capacity: int | CuckooReserveOptions,
    ) -> None:
        """Create an empty Cuckoo filter.

        Args:
            key: Name of the filter.
            capacity: Capacity of the filter or the full set of reserve
                options.

        Raises:
            ProtocolRejectionError: if the key already exists.
        """
        options = (
            capacity
            if isinstance(capacity, CuckooReserveOptions)
            else CuckooReserveOptions(capacity=capacity)
        )
        args = build_args(key, options.to_args())
        self._dispatcher.execute(CuckooCommand.RESERVE, args, decode_status)

    def cf_add(self, key: KeyT, item: ItemT) -> bool:
        """Add an item, creating the filter if needed.

        Returns:
            If the item was added.
        """
        return self._cuckoo_item(CuckooCommand.ADD, key, item)

    def cf_addnx(self, key: KeyT, item: ItemT) -> bool:
        """Add an item only if it does not already exist.

        Returns:
            If the item was added.
        """
        return self._cuckoo_item(CuckooCommand.ADDNX, key, item)

    def cf_insert(
        self,
        key: KeyT,
        *items: ItemT,
        options: CuckooInsertOptions | None = None,
    ) -> list[bool]:
        """Add items, optionally controlling how the filter is created.

        Returns:
            If each item was added. Items the server could not insert are \
            reported as `False`.
        """
        return self._cuckoo_insert(CuckooCommand.INSERT, key, items, options)

    def cf_insertnx(
        self,
        key: KeyT,
        *items: ItemT,
        options: CuckooInsertOptions | None = None,
    ) -> list[bool]:
        """Add items that do not already exist.

        Returns:
            If each item was added. Items that already existed or could \
            not be inserted are reported as `False`.
        """
        return self._cuckoo_insert(
            CuckooCommand.INSERTNX,
            key,
            items,
            options,
        )

    def cf_exists(self, key: KeyT, item: ItemT) -> bool:
        """Check if an item may exist in the filter.

        A missing filter is reported as `False`.
        """
        return self._cuckoo_item(CuckooCommand.EXIST, key, item)

    def cf_del(self, key: KeyT, item: ItemT) -> bool:
        """Delete one occurrence of an item.

        Returns:
            If an occurrence was found and deleted.

        Raises:
            ProtocolRejectionError: if the filter does not exist.
        """
        return self._cuckoo_item(CuckooCommand.DEL, key, item)

    def cf_count(self, key: KeyT, item: ItemT) -> int:
        """Get the estimated number of occurrences of an item."""
        args = build_args(key, encode_items((item,)))
        return self._dispatcher.execute(CuckooCommand.COUNT, args, decode_int)

    def cf_scandump(self, key: KeyT, cursor: int) -> DumpChunk:
        """Fetch one chunk of a filter.

        Tip:
            Use [`cf_scandump_iter()`][sketchwire.client.SketchClient.cf_scandump_iter]
            rather than managing cursors by hand.

        Args:
            key: Name of the filter.
            cursor: `0` for the first call, otherwise the cursor of the
                previous chunk.
        """  # noqa: E501
        args = build_args(key, (encode_int(cursor),))
        return self._dispatcher.execute(
            CuckooCommand.SCANDUMP,
            args,
            decode_dump_chunk,
        )

    def cf_scandump_iter(self, key: KeyT) -> ScanDumpIterator:
        """Iterate over all chunks of a filter."""
        return ScanDumpIterator(functools.partial(self.cf_scandump, key))

    def cf_loadchunk(self, key: KeyT, chunk: DumpChunk) -> None:
        """Restore one chunk produced by a scan dump."""
        args = build_args(key, (encode_int(chunk.cursor), chunk.data))
        self._dispatcher.execute(CuckooCommand.LOADCHUNK, args, decode_status)

    def cf_load_chunks(self, key: KeyT, chunks: Iterable[DumpChunk]) -> int:
        """Restore a filter from all of its chunks, in dump order.

        Returns:
            Number of chunks loaded.
        """
        return load_chunks(functools.partial(self.cf_loadchunk, key), chunks)

    def cf_info(self, key: KeyT) -> InfoMap:
        """Get information about a Cuckoo filter."""
        return self._dispatcher.execute(
            CuckooCommand.INFO,
            build_args(key),
            decode_info_map,
        )

    def _cuckoo_item(
        self,
        command: CuckooCommand,
        key: KeyT,
        item: ItemT,
    ) -> bool:
        args = build_args(key, encode_items((item,)))
        return self._dispatcher.execute(
            command,
            args,
            functools.partial(decode_bool, policy=_POSITIVE),
        )

    def _cuckoo_insert(
        self,
        command: CuckooCommand,
        key: KeyT,
        items: Sequence[ItemT],
        options: CuckooInsertOptions | None,
    ) -> list[bool]:
        args = build_args(
            key,
            options.to_args() if options is not None else (),
            (Keyword.ITEMS.raw,),
            encode_items(items),
        )
        return self._dispatcher.execute(
            command,
            args,
            functools.partial(decode_bool_list, policy=_POSITIVE),
        )

    # Count-Min-Sketch

    def cms_initbydim(self, key: KeyT, width: int, depth: int) -> None:
        """Create a sketch with the given dimensions."""
        args = build_args(key, (encode_int(width), encode_int(depth)))
        self._dispatcher.execute(CMSCommand.INITBYDIM, args, decode_status)

    def cms_initbyprob(
        self,
        key: KeyT,
        error: float,
        probability: float,
    ) -> None:
        """Create a sketch sized for an error bound and probability."""
        args = build_args(
            key,
            (encode_float(error), encode_float(probability)),
        )
        self._dispatcher.execute(CMSCommand.INITBYPROB, args, decode_status)

    def cms_incrby(self, key: KeyT, item: ItemT, increment: int) -> int:
        """Increase the count of one item.

        Returns:
            Updated count of the item.

        Raises:
            ServerDataError: if the server could not apply the increment,
                for example because the count would overflow.
        """
        args = build_args(key, _increment_pairs({item: increment}))
        return self._dispatcher.execute(
            CMSCommand.INCRBY,
            args,
            decode_leading_int,
        )

    def cms_incrby_many(
        self,
        key: KeyT,
        increments: Mapping[ItemT, int],
    ) -> list[int]:
        """Increase the counts of several items.

        Returns:
            Updated counts in the iteration order of `increments`. Items \
            the server could not increase are left out.
        """
        args = build_args(key, _increment_pairs(increments))
        return self._dispatcher.execute(
            CMSCommand.INCRBY,
            args,
            decode_int_list,
        )

    def cms_query(self, key: KeyT, *items: ItemT) -> list[int]:
        """Get the estimated count of each item.

        Raises:
            ProtocolRejectionError: if the sketch does not exist.
        """
        args = build_args(key, encode_items(items))
        return self._dispatcher.execute(
            CMSCommand.QUERY,
            args,
            decode_int_list,
        )

    def cms_merge(
        self,
        dest: KeyT,
        *sources: KeyT,
        weights: Sequence[int] | Mapping[KeyT, int] | None = None,
    ) -> None:
        """Merge sketches into `dest`.

        The counts of `dest` are not reset first: merged counts are added
        to the counts already in `dest`.

        Args:
            dest: Sketch to merge into. Must already exist.
            sources: Sketches to merge.
            weights: Optional weights. Either a sequence aligned with
                `sources` or a mapping from source key to weight, in which
                case `sources` must be empty.

        Raises:
            TypeError: if a weight mapping is given along with `sources`.
            ValueError: if no sources are given or the weights are not
                aligned with the sources.
        """
        keys: Sequence[KeyT]
        weight_values: Sequence[int] | None
        if isinstance(weights, Mapping):
            if len(sources) > 0:
                raise TypeError(
                    'Sources must not be given separately from a weight '
                    'mapping.',
                )
            keys = tuple(weights.keys())
            weight_values = tuple(weights.values())
        else:
            keys = sources
            weight_values = weights

        if len(keys) == 0:
            raise ValueError('At least one source sketch is required.')
        if weight_values is not None and len(weight_values) != len(keys):
            raise ValueError(
                f'Got {len(weight_values)} weight(s) for {len(keys)} '
                'source(s).',
            )

        weight_args: list[bytes] = []
        if weight_values is not None:
            weight_args.append(Keyword.WEIGHTS.raw)
            weight_args.extend(encode_int(w) for w in weight_values)
        args = build_args(
            dest,
            (encode_int(len(keys)),),
            (encode_key(k) for k in keys),
            weight_args,
        )
        self._dispatcher.execute(CMSCommand.MERGE, args, decode_status)

    def cms_info(self, key: KeyT) -> InfoMap:
        """Get the width, depth and total count of a sketch."""
        return self._dispatcher.execute(
            CMSCommand.INFO,
            build_args(key),
            decode_info_map,
        )

    # Top-K

    def topk_reserve(
        self,
        key: KeyT,
        topk: int,
        width: int,
        depth: int,
        decay: float,
    ) -> None:
        """Create an empty Top-K sketch."""
        args = build_args(
            key,
            (
                encode_int(topk),
                encode_int(width),
                encode_int(depth),
                encode_float(decay),
            ),
        )
        self._dispatcher.execute(TopKCommand.RESERVE, args, decode_status)

    def topk_add(self, key: KeyT, *items: ItemT) -> list[str | None]:
        """Add items to the sketch.

        Returns:
            For each item, the item expelled from the top-k list by the \
            addition or `None`.
        """
        args = build_args(key, encode_items(items))
        return self._dispatcher.execute(TopKCommand.ADD, args, decode_str_list)

    def topk_incrby(
        self,
        key: KeyT,
        increments: Mapping[ItemT, int],
    ) -> list[str | None]:
        """Increase the scores of items.

        Returns:
            For each item, the item expelled from the top-k list by the \
            increase or `None`.
        """
        args = build_args(key, _increment_pairs(increments))
        return self._dispatcher.execute(
            TopKCommand.INCRBY,
            args,
            decode_str_list,
        )

    def topk_query(self, key: KeyT, *items: ItemT) -> list[bool]:
        """Check if each item is in the top-k list."""
        args = build_args(key, encode_items(items))
        return self._dispatcher.execute(
            TopKCommand.QUERY,
            args,
            functools.partial(decode_bool_list, policy=_NONZERO),
        )

    def topk_count(self, key: KeyT, *items: ItemT) -> list[int]:
        """Get the estimated count of each item."""
        args = build_args(key, encode_items(items))
        return self._dispatcher.execute(
            TopKCommand.COUNT,
            args,
            decode_int_list,
        )

    def topk_list(self, key: KeyT) -> list[str]:
        """Get the items currently in the top-k list."""
        items = self._dispatcher.execute(
            TopKCommand.LIST,
            build_args(key),
            decode_str_list,
        )
        return [item for item in items if item is not None]

    def topk_info(self, key: KeyT) -> InfoMap:
        """Get the k, width, depth and decay of a sketch."""
        return self._dispatcher.execute(
            TopKCommand.INFO,
            build_args(key),
            decode_info_map,
        )

    # T-Digest

    def tdigest_create(self, key: KeyT, compression: int = 100) -> None:
        """Create an empty T-Digest sketch."""
        args = build_args(
            key,
            (Keyword.COMPRESSION.raw, encode_int(compression)),
        )
        self._dispatcher.execute(TDigestCommand.CREATE, args, decode_status)

    def tdigest_reset(self, key: KeyT) -> None:
        """Empty a sketch without changing its compression."""
        self._dispatcher.execute(
            TDigestCommand.RESET,
            build_args(key),
            decode_status,
        )

    def tdigest_add(self, key: KeyT, *values: float) -> None:
        """Add observations to a sketch."""
        args = build_args(key, (encode_float(v) for v in values))
        self._dispatcher.execute(TDigestCommand.ADD, args, decode_status)

    def tdigest_merge(self, dest: KeyT, *sources: KeyT) -> None:
        """Merge sketches into `dest`."""
        args = build_args(
            dest,
            (encode_int(len(sources)),),
            (encode_key(k) for k in sources),
        )
        self._dispatcher.execute(TDigestCommand.MERGE, args, decode_status)

    def tdigest_info(self, key: KeyT) -> InfoMap:
        """Get information about a sketch."""
        return self._dispatcher.execute(
            TDigestCommand.INFO,
            build_args(key),
            decode_info_map,
        )

    def tdigest_cdf(self, key: KeyT, *values: float) -> list[float]:
        """Get the fraction of observations less than or equal to each value.

        An empty sketch reports `nan` for every value.
        """
        args = build_args(key, (encode_float(v) for v in values))
        return self._dispatcher.execute(
            TDigestCommand.CDF,
            args,
            decode_float_list,
        )

    def tdigest_quantile(self, key: KeyT, *quantiles: float) -> list[float]:
        """Get the estimated value at each quantile."""
        args = build_args(key, (encode_float(q) for q in quantiles))
        return self._dispatcher.execute(
            TDigestCommand.QUANTILE,
            args,
            decode_float_list,
        )

    def tdigest_min(self, key: KeyT) -> float:
        """Get the smallest observation, or `nan` if the sketch is empty."""
        return self._dispatcher.execute(
            TDigestCommand.MIN,
            build_args(key),
            decode_float,
        )

    def tdigest_max(self, key: KeyT) -> float:
        """Get the largest observation, or `nan` if the sketch is empty."""
        return self._dispatcher.execute(
            TDigestCommand.MAX,
            build_args(key),
            decode_float,
        )
