from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, Optional

from paperdesk.errors import ConflictError, NotFoundError
from paperdesk.models import Paper, PaperFilters, PaperStats, Question
from paperdesk.storage.repo import PaperRepository, QuestionRepository


class InMemoryPaperRepository(PaperRepository):
    def __init__(self) -> None:
        self.papers: Dict[str, Paper] = {}

    def _get(self, company_id: str, paper_id: str) -> Paper:
        paper = self.papers.get(paper_id)
        if paper is None or paper.company_id != company_id:
            raise NotFoundError("Paper not found")
        return paper

    async def insert(self, paper: Paper) -> Paper:
        self.papers[paper.paper_id] = paper.model_copy(deep=True)
        return paper

    async def load(self, company_id: str, paper_id: str) -> Paper:
        return self._get(company_id, paper_id).model_copy(deep=True)

    async def save(self, paper: Paper, expected_version: int) -> Paper:
        stored = self._get(paper.company_id, paper.paper_id)
        if stored.version != expected_version:
            raise ConflictError("Paper has been modified by another user. Please refresh and try again.")
        self.papers[paper.paper_id] = paper.model_copy(deep=True)
        return paper

    async def delete(self, company_id: str, paper_id: str, expected_version: int) -> None:
        stored = self._get(company_id, paper_id)
        if stored.version != expected_version:
            raise ConflictError("Paper has been modified by another user. Please refresh and try again.")
        del self.papers[paper_id]

    async def list(self, company_id: str, filters: PaperFilters) -> tuple[list[Paper], int]:
        matches = [p for p in self.papers.values() if p.company_id == company_id]
        if filters.status is not None:
            matches = [p for p in matches if p.status == filters.status]
        if filters.template_id:
            matches = [p for p in matches if p.template_id == filters.template_id]
        if filters.search:
            needle = filters.search.lower()
            matches = [p for p in matches if needle in p.title.lower()]

        matches.sort(key=lambda p: getattr(p, filters.sort_by), reverse=filters.sort_dir == "desc")
        start = (filters.page - 1) * filters.limit
        page = matches[start : start + filters.limit]
        return [p.model_copy(deep=True) for p in page], len(matches)

    async def stats(self, company_id: str) -> PaperStats:
        papers = [p for p in self.papers.values() if p.company_id == company_id]
        by_status = Counter(p.status.value for p in papers)
        question_counts = [sum(len(s.questions) for s in p.sections) for p in papers]
        avg = sum(question_counts) / len(question_counts) if question_counts else 0
        return PaperStats(
            by_status=dict(by_status),
            total_pdfs=sum(len(p.pdfs) for p in papers),
            avg_questions_per_paper=round(avg, 1),
        )


class InMemoryQuestionRepository(QuestionRepository):
    def __init__(self) -> None:
        self.questions: Dict[str, Question] = {}

    async def insert(self, question: Question) -> Question:
        self.questions[question.question_id] = question.model_copy(deep=True)
        return question

    async def find_by_id(self, company_id: str, question_id: str) -> Optional[Question]:
        question = self.questions.get(question_id)
        if question is None or question.company_id != company_id:
            return None
        return question.model_copy(deep=True)

    async def find_many(self, company_id: str, question_ids: Iterable[str]) -> list[Question]:
        found = []
        for qid in dict.fromkeys(question_ids):
            question = await self.find_by_id(company_id, qid)
            if question is not None:
                found.append(question)
        return found

    async def increment_usage(self, question_id: str, delta: int) -> None:
        question = self.questions.get(question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        # Single step with no await in between; unclamped so early decrements still net out.
        question.usage.paper_count += delta
