from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from paperdesk.models import Paper, PaperFilters, PaperStats, Question


class PaperRepository(ABC):
    @abstractmethod
    async def insert(self, paper: Paper) -> Paper:
        raise NotImplementedError

    @abstractmethod
    async def load(self, company_id: str, paper_id: str) -> Paper:
        """Return the paper or raise NotFoundError."""
        raise NotImplementedError

    @abstractmethod
    async def save(self, paper: Paper, expected_version: int) -> Paper:
        """Replace the stored paper only if its version is still ``expected_version``.

        Raises ConflictError otherwise; the stored document is left as it was.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, company_id: str, paper_id: str, expected_version: int) -> None:
        raise NotImplementedError

    @abstractmethod
    async def list(self, company_id: str, filters: PaperFilters) -> tuple[list[Paper], int]:
        raise NotImplementedError

    @abstractmethod
    async def stats(self, company_id: str) -> PaperStats:
        raise NotImplementedError


class QuestionRepository(ABC):
    @abstractmethod
    async def insert(self, question: Question) -> Question:
        raise NotImplementedError

    @abstractmethod
    async def find_by_id(self, company_id: str, question_id: str) -> Optional[Question]:
        raise NotImplementedError

    @abstractmethod
    async def find_many(self, company_id: str, question_ids: Iterable[str]) -> list[Question]:
        """Return the questions that exist, in no particular order; missing ids are skipped."""
        raise NotImplementedError

    @abstractmethod
    async def increment_usage(self, question_id: str, delta: int) -> None:
        """Atomically add ``delta`` to ``usage.paper_count``, never clamping."""
        raise NotImplementedError
