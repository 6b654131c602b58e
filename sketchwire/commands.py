"""Wire command and keyword tokens.

Each enum member's value is the exact, case-sensitive token sent to the
server.
"""
from __future__ import annotations

import enum
from typing import Union


class _WireToken(str, enum.Enum):
    def __str__(self) -> str:
        return self.value

    @property
    def raw(self) -> bytes:
        """Token encoded as bytes."""
        return self.value.encode('utf-8')


class BloomCommand(_WireToken):
    """Bloom filter commands."""

    RESERVE = 'BF.RESERVE'
    ADD = 'BF.ADD'
    MADD = 'BF.MADD'
    EXISTS = 'BF.EXISTS'
    MEXISTS = 'BF.MEXISTS'
    INSERT = 'BF.INSERT'
    INFO = 'BF.INFO'


class CuckooCommand(_WireToken):
    """Cuckoo filter commands."""

    RESERVE = 'CF.RESERVE'
    ADD = 'CF.ADD'
    ADDNX = 'CF.ADDNX'
    INSERT = 'CF.INSERT'
    INSERTNX = 'CF.INSERTNX'
    EXIST = 'CF.EXISTS'
    DEL = 'CF.DEL'
    COUNT = 'CF.COUNT'
    SCANDUMP = 'CF.SCANDUMP'
    LOADCHUNK = 'CF.LOADCHUNK'
    INFO = 'CF.INFO'


class CMSCommand(_WireToken):
    """Count-Min-Sketch commands."""

    INITBYDIM = 'CMS.INITBYDIM'
    INITBYPROB = 'CMS.INITBYPROB'
    INCRBY = 'CMS.INCRBY'
    QUERY = 'CMS.QUERY'
    MERGE = 'CMS.MERGE'
    INFO = 'CMS.INFO'


class TopKCommand(_WireToken):
    """Top-K commands."""

    RESERVE = 'TOPK.RESERVE'
    ADD = 'TOPK.ADD'
    INCRBY = 'TOPK.INCRBY'
    QUERY = 'TOPK.QUERY'
    COUNT = 'TOPK.COUNT'
    LIST = 'TOPK.LIST'
    INFO = 'TOPK.INFO'


class TDigestCommand(_WireToken):
    """T-Digest commands."""

    CREATE = 'TDIGEST.CREATE'
    RESET = 'TDIGEST.RESET'
    ADD = 'TDIGEST.ADD'
    MERGE = 'TDIGEST.MERGE'
    INFO = 'TDIGEST.INFO'
    CDF = 'TDIGEST.CDF'
    QUANTILE = 'TDIGEST.QUANTILE'
    MIN = 'TDIGEST.MIN'
    MAX = 'TDIGEST.MAX'


class Keyword(_WireToken):
    """Keyword tokens used inside command arguments."""

    CAPACITY = 'CAPACITY'
    ERROR = 'ERROR'
    NOCREATE = 'NOCREATE'
    ITEMS = 'ITEMS'
    EXPANSION = 'EXPANSION'
    NONSCALING = 'NONSCALING'
    BUCKETSIZE = 'BUCKETSIZE'
    MAXITERATIONS = 'MAXITERATIONS'
    WEIGHTS = 'WEIGHTS'
    COMPRESSION = 'COMPRESSION'


class KeyCommand(_WireToken):
    """Generic key commands."""

    DEL = 'DEL'


CommandT = Union[
    KeyCommand,
    BloomCommand,
    CuckooCommand,
    CMSCommand,
    TopKCommand,
    TDigestCommand,
]
