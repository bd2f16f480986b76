"""Remote source implementations."""

from webfilecache.sources.web import WebSource

__all__ = ["WebSource"]
