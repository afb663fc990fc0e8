from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional, Sequence
from app.schemas.assignment import Assignment, AssignmentStatus

class AssignmentRepo(ABC):
    @abstractmethod
    async def create(self, assignment: Assignment) -> str:
        """Inserisce un assignment (id già generato nel service) e ritorna l'ID."""
        raise NotImplementedError

    @abstractmethod
    async def find_one(self, assignment_id: str) -> Optional[Assignment]:
        """Ritorna un assignment per ID, oppure None se non esiste."""
        raise NotImplementedError

    @abstractmethod
    async def find_many(self, assignment_ids: Iterable[str]) -> Sequence[Assignment]:
        """Ritorna gli assignment esistenti tra gli ID richiesti, in ordine qualsiasi."""
        raise NotImplementedError

    @abstractmethod
    async def find_for_teacher(
        self, teacher_id: str, status: Optional[AssignmentStatus] = None
    ) -> Sequence[Assignment]:
        """Assignment creati dal teacher, più recenti prima, filtrabili per stato."""
        raise NotImplementedError

    @abstractmethod
    async def find_published(self) -> Sequence[Assignment]:
        """Tutti gli assignment pubblicati, per dueDate crescente."""
        raise NotImplementedError

    @abstractmethod
    async def replace_if_version(self, assignment: Assignment, expected_version: int) -> bool:
        """
        Sostituisce il documento solo se la versione salvata è ancora expected_version.
        Ritorna False se un'altra scrittura è arrivata prima (compare-and-swap).
        """
        raise NotImplementedError

    @abstractmethod
    async def delete_draft(self, assignment_id: str, expected_version: int) -> bool:
        """
        Cancella, in un'unica transazione, l'assignment in stato draft con la versione
        attesa e tutte le submission collegate. Ritorna False se la guardia non regge.
        """
        raise NotImplementedError
