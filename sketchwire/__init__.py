"""sketchwire is a client for server-side probabilistic data structures."""
from __future__ import annotations

import importlib.metadata as importlib_metadata

__version__ = importlib_metadata.version('sketchwire')
