"""Building blocks of a small blog server: storage, rendering, themes, URLs and HTTP helpers."""

__version__ = "0.1.0"

__all__ = [
    "data",
    "database",
    "hashing",
    "http_client",
    "post",
    "process",
    "rendering",
    "theme",
    "url",
    "utils",
]