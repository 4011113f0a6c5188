"""
Database interface: connections, result sets and table helpers.
"""

from .connection import Connection, connect
from .result import ResultSet

__all__ = ["Connection", "ResultSet", "connect"]
