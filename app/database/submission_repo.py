from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Sequence
from app.schemas.submission import Submission

class SubmissionRepo(ABC):
    @abstractmethod
    async def create(self, submission: Submission) -> str:
        """
        Inserisce la submission. Il vincolo unico (assignmentId, studentId) è garantito
        dallo storage: in caso di duplicato solleva DuplicateSubmissionError.
        """
        raise NotImplementedError

    @abstractmethod
    async def find_one(self, submission_id: str) -> Optional[Submission]:
        raise NotImplementedError

    @abstractmethod
    async def find_for_student(
        self, student_id: str, assignment_ids: Optional[Iterable[str]] = None
    ) -> Sequence[Submission]:
        """Submission dello studente, più recenti prima (opzionalmente solo per certi assignment)."""
        raise NotImplementedError

    @abstractmethod
    async def find_for_assignment(self, assignment_id: str) -> Sequence[Submission]:
        """Submission di un assignment, più recenti prima."""
        raise NotImplementedError

    @abstractmethod
    async def count_for_assignments(self, assignment_ids: Iterable[str]) -> Dict[str, int]:
        """Numero di submission per assignment; gli ID senza submission possono mancare."""
        raise NotImplementedError

    @abstractmethod
    async def update_review(self, submission_id: str, changes: Dict[str, Any]) -> Optional[Submission]:
        """
        Applica i campi di revisione (reviewed, reviewedAt, feedback) in una singola
        scrittura e ritorna il documento aggiornato, oppure None se non esiste.
        """
        raise NotImplementedError
