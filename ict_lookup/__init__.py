"""ICT Lookup - panel test history lookup by scanned DMC."""

try:
    from ict_lookup._version import version as __version__
except ImportError:
    __version__ = "0.0.0.dev0"
