"""Storage module: pipe-delimited flat-file persistence."""

from .flatfile import HOLDER_FILES, FlatFileStore, LoadReport

__all__ = [
    "FlatFileStore",
    "LoadReport",
    "HOLDER_FILES",
]
