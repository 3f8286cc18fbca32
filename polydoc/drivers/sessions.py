from abc import ABC, abstractmethod


class BaseDriverSession(ABC):
    """A database session bound to a single logical unit of work.

    A session is owned by exactly one transaction attempt. It is created by `BaseDriver.start_session`, used for one
    or more reads and writes, committed or aborted, and always ended. Using the session as an async context manager
    guarantees it is ended on every exit path.
    """

    # ---------------------------------------- #
    # Transaction Management                   #
    # ---------------------------------------- #
    @abstractmethod
    def start_transaction(self):
        """Starts a transaction on this session."""
        ...

    @abstractmethod
    async def commit_transaction(self):
        """Commits the active transaction."""
        ...

    @abstractmethod
    async def abort_transaction(self):
        """Discards every change made inside the active transaction."""
        ...

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """Whether a transaction is currently active on this session."""
        ...

    # ---------------------------------------- #
    # Session Lifecycle                        #
    # ---------------------------------------- #
    @abstractmethod
    async def end_session(self):
        """Ends the session, aborting an active transaction first."""
        ...

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.end_session()
