"""Command line interface for the peerBench trust scoring engine."""

__all__ = [
    "settings",
    "utils",
]
