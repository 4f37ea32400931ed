"""Map, map-stream and batch-map services, messages and server info for Numaflow user functions."""

__version__ = "0.8.1"

__all__ = [
    "batchmapper",
    "datum",
    "examples",
    "info",
    "mapper",
    "mapstreamer",
    "message",
    "protocol",
]