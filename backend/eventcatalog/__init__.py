"""Event catalog ingestion backend."""

__version__ = "0.1.0"
