"""
dep - Efficient version control.

Tracks snapshots of a working directory as an append-only chain of
content-addressed commits organized into branches, with staging,
stashing, reset, diffing, and three-way merge.
"""

__version__ = "0.1.0"

# Configuration is available at top level for convenience
from dep.config import config

__all__ = ["config", "__version__"]
