"""
Sources

Stateful backends that own database connections. Tools borrow the handle a
source exposes; the source closes it on shutdown.
"""

from .sqlite import SQLitePool, SQLiteSource, SOURCE_KIND as SQLITE_SOURCE_KIND

__all__ = [
    "SQLitePool",
    "SQLiteSource",
    "SQLITE_SOURCE_KIND",
]
