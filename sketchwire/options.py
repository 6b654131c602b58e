"""Optional command arguments.

Each options model is immutable and encodes itself into an ordered
argument fragment with `to_args()`. Fields left as `None` (or `False`
for flags) are omitted from the fragment.

Note:
    Combining `NOCREATE` with `CAPACITY` or `ERROR` is rejected by the
    server, not by these models.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from sketchwire.commands import Keyword
from sketchwire.encoding import encode_float
from sketchwire.encoding import encode_int


class _Options(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    def to_args(self) -> list[bytes]:  # pragma: no cover
        raise NotImplementedError


class ReserveParams(_Options):
    """Scaling parameters for `BF.RESERVE` and `BF.INSERT`.

    Attributes:
        expansion: Growth factor of sub-filters created when the filter
            fills. Zero (the default) leaves the server default in place.
        non_scaling: Prevent the filter from creating sub-filters.
    """

    expansion: int = Field(0, ge=0)
    non_scaling: bool = False

    def to_args(self) -> list[bytes]:
        """Encode as `[EXPANSION n] [NONSCALING]`."""
        args: list[bytes] = []
        if self.expansion > 0:
            args.extend((Keyword.EXPANSION.raw, encode_int(self.expansion)))
        if self.non_scaling:
            args.append(Keyword.NONSCALING.raw)
        return args


class InsertOptions(_Options):
    """Filter creation options for `BF.INSERT`.

    Attributes:
        capacity: Capacity of the filter if it is created by the insert.
        error_rate: Error rate of the filter if it is created by the insert.
        no_create: Fail instead of creating the filter if it does not
            exist.
    """

    capacity: Optional[int] = Field(None, gt=0)  # noqa: UP007
    error_rate: Optional[float] = Field(None, gt=0, lt=1)  # noqa: UP007
    no_create: bool = False

    def to_args(self, params: ReserveParams | None = None) -> list[bytes]:
        """Encode as `[CAPACITY c] [ERROR e] [params...] [NOCREATE]`.

        Args:
            params: Scaling parameters placed between the creation options
                and `NOCREATE`.
        """
        args: list[bytes] = []
        if self.capacity is not None:
            args.extend((Keyword.CAPACITY.raw, encode_int(self.capacity)))
        if self.error_rate is not None:
            args.extend((Keyword.ERROR.raw, encode_float(self.error_rate)))
        if params is not None:
            args.extend(params.to_args())
        if self.no_create:
            args.append(Keyword.NOCREATE.raw)
        return args


class CuckooReserveOptions(_Options):
    """Options for `CF.RESERVE`.

    Attributes:
        capacity: Number of items the filter should hold. Required.
        bucket_size: Number of items in each bucket.
        max_iterations: Number of swap attempts before the filter is
            declared full and a new sub-filter is created.
        expansion: Growth factor of new sub-filters.
    """

    capacity: int = Field(gt=0)
    bucket_size: Optional[int] = Field(None, gt=0)  # noqa: UP007
    max_iterations: Optional[int] = Field(None, gt=0)  # noqa: UP007
    expansion: Optional[int] = Field(None, ge=0)  # noqa: UP007

    def to_args(self) -> list[bytes]:
        """Encode as `capacity [BUCKETSIZE b] [MAXITERATIONS m] [EXPANSION e]`."""  # noqa: E501
        args = [encode_int(self.capacity)]
        if self.bucket_size is not None:
            args.extend((Keyword.BUCKETSIZE.raw, encode_int(self.bucket_size)))
        if self.max_iterations is not None:
            args.extend(
                (Keyword.MAXITERATIONS.raw, encode_int(self.max_iterations)),
            )
        if self.expansion is not None:
            args.extend((Keyword.EXPANSION.raw, encode_int(self.expansion)))
        return args


class CuckooInsertOptions(_Options):
    """Options for `CF.INSERT` and `CF.INSERTNX`.

    Attributes:
        capacity: Capacity of the filter if it is created by the insert.
        no_create: Fail instead of creating the filter if it does not
            exist.
    """

    capacity: Optional[int] = Field(None, gt=0)  # noqa: UP007
    no_create: bool = False

    def to_args(self) -> list[bytes]:
        """Encode as `[CAPACITY c] [NOCREATE]`."""
        args: list[bytes] = []
        if self.capacity is not None:
            args.extend((Keyword.CAPACITY.raw, encode_int(self.capacity)))
        if self.no_create:
            args.append(Keyword.NOCREATE.raw)
        return args
