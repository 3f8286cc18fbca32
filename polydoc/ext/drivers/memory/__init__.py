"""In-memory driver implementation for polydoc.

This module provides a driver that stores documents in process memory. It implements the complete driver interface,
including multi-document transactions, write conflict detection and unique indexes, which makes it well suited for
tests and local development where no MongoDB server is available.

Example:
    ```python
    from polydoc.ext.drivers.memory import MemoryDriver, MemorySettings

    driver = MemoryDriver.connect(MemorySettings(database_name="library"))
    repository = DocumentRepository(type_map, driver)
    ```
"""

from .driver import MemoryDriver, MemorySettings
from .session import MemorySession
from .store import MemoryStore


__all__ = ["MemoryDriver", "MemorySession", "MemorySettings", "MemoryStore"]
