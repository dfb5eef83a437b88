"""projlens - background process that serializes project analysis requests."""

__version__ = "0.1.0"
