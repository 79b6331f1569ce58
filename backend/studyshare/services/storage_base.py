"""
StudyShare Backend — Abstract Storage Backend Interface
=========================================================

What:  Contract for the places an uploaded document can be written to.
Why:   Local disk is convenient for development; S3 is what production uses.
       StorageService validates uploads once and hands bytes to whichever
       backend the configuration selects (Strategy pattern).
How:   Concrete backends implement save(), delete() and health_check().
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class StoredFile:
    """Where an accepted upload ended up."""

    url: str           # publicly resolvable reference handed to clients
    key: str           # backend-relative key, needed for deletion
    content_type: str  # declared MIME type
    size: int          # bytes written


class StorageBackend(ABC):
    """
    Abstract interface for durable document storage.

    Contract:
        - save() persists the bytes under `key` and returns the public URL
        - failures are raised as FileStorageError
        - delete() is best-effort: it logs problems and never raises
    """

    name: str = "abstract"

    @abstractmethod
    async def save(self, key: str, content: bytes, content_type: str) -> str:
        """
        Persist `content` under `key`.

        Returns:
            The public URL of the stored object.

        Raises:
            FileStorageError: the write failed (after retries, where applicable).
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the object stored under `key`, if it still exists."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the backend can currently accept writes."""
        ...
