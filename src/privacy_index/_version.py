"""Version information for privacy_index."""

try:
    from privacy_index._version_info import __version__, __version_tuple__
except ImportError:
    __version__ = "unknown"
    __version_tuple__ = (0, 0, 0, "unknown", "unknown")
