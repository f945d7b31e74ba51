"""Access-gated static file serving."""

from authgate.static.files import LookupKind, calculate_etag, clean_path, resolve_path
from authgate.static.middleware import StaticConfig, StaticMiddleware

__all__ = [
    "LookupKind",
    "StaticConfig",
    "StaticMiddleware",
    "calculate_etag",
    "clean_path",
    "resolve_path",
]
