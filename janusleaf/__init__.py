"""JanusLeaf - journaling backend with asynchronous mood and quote enrichment"""

from __future__ import annotations

__version__ = "1.0.0"
