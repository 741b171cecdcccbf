"""econchat: FRED-backed economic chat with a cache-aside context layer."""

__version__ = "1.0.0"
