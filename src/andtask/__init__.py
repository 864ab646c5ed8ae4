"""
andtask - local data-access layer for todos and notes.

Records live in an embedded SQLite database with an FTS5 search index
mirrored from both tables.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("andtask-store")
except PackageNotFoundError:
    __version__ = "0.3.0"
