"""Forum archiving building blocks: topic indexes, live refresh, page storage, post parsing, progress state and metrics."""

__version__ = "0.1.0"