"""Protocol building blocks for aggregating multiple network links into one connection."""

__version__ = "0.1.0"

__all__ = [
    "codec",
    "errors",
    "framing",
    "handshake",
    "ids",
    "msg",
    "peekable",
    "seq",
    "status",
]