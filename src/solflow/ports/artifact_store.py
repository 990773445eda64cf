from abc import ABC, abstractmethod

from ..domain.models import ArtifactSlot


class ArtifactStore(ABC):
    """Durable two-slot channel between offline signing stages.

    Each slot has one writer and one reader per run; writing a slot replaces
    whatever it held before.
    """

    @abstractmethod
    def write(self, slot: ArtifactSlot, raw: bytes) -> str:
        """Persist raw transaction bytes. Returns the encoded text written."""
        ...

    @abstractmethod
    def read(self, slot: ArtifactSlot) -> bytes:
        ...

    @abstractmethod
    def exists(self, slot: ArtifactSlot) -> bool:
        ...
