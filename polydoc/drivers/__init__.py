from polydoc.drivers.drivers import BaseDriver, Document, SortSpec
from polydoc.drivers.sessions import BaseDriverSession


__all__ = ["BaseDriver", "BaseDriverSession", "Document", "SortSpec"]
