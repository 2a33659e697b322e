"""Minimal snapshot-backed key-value server.

The package exposes a tiny line-oriented protocol over TCP, keeps its data in
an in-memory mapping and writes that mapping to a JSON snapshot on shutdown.
Modules are intentionally lightweight and do not bind sockets or touch the
snapshot file on import.
"""

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
