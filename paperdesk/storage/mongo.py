from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from paperdesk.errors import ConflictError, DependencyError, NotFoundError
from paperdesk.models import Paper, PaperFilters, PaperStats, Question
from paperdesk.storage.repo import PaperRepository, QuestionRepository


@contextmanager
def _driver_errors(action: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as e:
        raise DependencyError(f"MongoDB unavailable while trying to {action}: {e}") from e


class MongoPaperRepository(PaperRepository):
    def __init__(self, client: AsyncIOMotorClient, db_name: str) -> None:
        self.papers = client[db_name]["papers"]

    async def insert(self, paper: Paper) -> Paper:
        with _driver_errors("insert paper"):
            await self.papers.insert_one(paper.model_dump(mode="json"))
        return paper

    async def load(self, company_id: str, paper_id: str) -> Paper:
        with _driver_errors("load paper"):
            doc = await self.papers.find_one({"company_id": company_id, "paper_id": paper_id})
        if not doc:
            raise NotFoundError("Paper not found")
        return Paper.model_validate(doc)

    async def _missing_or_conflict(self, company_id: str, paper_id: str) -> Exception:
        with _driver_errors("load paper"):
            exists = await self.papers.count_documents({"company_id": company_id, "paper_id": paper_id}, limit=1)
        if not exists:
            return NotFoundError("Paper not found")
        return ConflictError("Paper has been modified by another user. Please refresh and try again.")

    async def save(self, paper: Paper, expected_version: int) -> Paper:
        # Conditional replace keyed on version: the optimistic lock.
        with _driver_errors("save paper"):
            result = await self.papers.replace_one(
                {"company_id": paper.company_id, "paper_id": paper.paper_id, "version": expected_version},
                paper.model_dump(mode="json"),
            )
        if result.matched_count == 0:
            raise await self._missing_or_conflict(paper.company_id, paper.paper_id)
        return paper

    async def delete(self, company_id: str, paper_id: str, expected_version: int) -> None:
        with _driver_errors("delete paper"):
            result = await self.papers.delete_one(
                {"company_id": company_id, "paper_id": paper_id, "version": expected_version}
            )
        if result.deleted_count == 0:
            raise await self._missing_or_conflict(company_id, paper_id)

    async def list(self, company_id: str, filters: PaperFilters) -> tuple[list[Paper], int]:
        query: dict = {"company_id": company_id}
        if filters.status is not None:
            query["status"] = filters.status.value
        if filters.template_id:
            query["template_id"] = filters.template_id
        if filters.search:
            query["title"] = {"$regex": re.escape(filters.search), "$options": "i"}

        direction = ASCENDING if filters.sort_dir == "asc" else DESCENDING
        with _driver_errors("list papers"):
            cursor = (
                self.papers.find(query)
                .sort(filters.sort_by, direction)
                .skip((filters.page - 1) * filters.limit)
                .limit(filters.limit)
            )
            docs = await cursor.to_list(length=filters.limit)
            total = await self.papers.count_documents(query)
        return [Paper.model_validate(d) for d in docs], total

    async def stats(self, company_id: str) -> PaperStats:
        match = {"$match": {"company_id": company_id}}
        with _driver_errors("aggregate paper stats"):
            by_status = await self.papers.aggregate(
                [match, {"$group": {"_id": "$status", "count": {"$sum": 1}}}]
            ).to_list(length=None)
            totals = await self.papers.aggregate(
                [
                    match,
                    {
                        "$project": {
                            "pdf_count": {"$size": "$pdfs"},
                            "q_count": {
                                "$reduce": {
                                    "input": "$sections",
                                    "initialValue": 0,
                                    "in": {"$add": ["$$value", {"$size": "$$this.questions"}]},
                                }
                            },
                        }
                    },
                    {"$group": {"_id": None, "total_pdfs": {"$sum": "$pdf_count"}, "avg_q": {"$avg": "$q_count"}}},
                ]
            ).to_list(length=None)

        summary = totals[0] if totals else {}
        return PaperStats(
            by_status={d["_id"]: d["count"] for d in by_status},
            total_pdfs=summary.get("total_pdfs", 0),
            avg_questions_per_paper=round(summary.get("avg_q") or 0, 1),
        )


class MongoQuestionRepository(QuestionRepository):
    def __init__(self, client: AsyncIOMotorClient, db_name: str) -> None:
        self.questions = client[db_name]["questions"]

    async def insert(self, question: Question) -> Question:
        with _driver_errors("insert question"):
            await self.questions.insert_one(question.model_dump(mode="json"))
        return question

    async def find_by_id(self, company_id: str, question_id: str) -> Optional[Question]:
        with _driver_errors("load question"):
            doc = await self.questions.find_one({"company_id": company_id, "question_id": question_id})
        return Question.model_validate(doc) if doc else None

    async def find_many(self, company_id: str, question_ids: Iterable[str]) -> list[Question]:
        ids = list(dict.fromkeys(question_ids))
        with _driver_errors("load questions"):
            docs = await self.questions.find(
                {"company_id": company_id, "question_id": {"$in": ids}}
            ).to_list(length=len(ids))
        return [Question.model_validate(d) for d in docs]

    async def increment_usage(self, question_id: str, delta: int) -> None:
        # Plain $inc: concurrent deltas commute, so the count converges.
        with _driver_errors("update question usage"):
            result = await self.questions.update_one(
                {"question_id": question_id},
                {"$inc": {"usage.paper_count": delta}},
            )
        if result.matched_count == 0:
            raise NotFoundError(f"Question {question_id} not found")
