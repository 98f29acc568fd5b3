"""
Tests for the in-memory paper and question repositories.
"""

import asyncio

import pytest
from conftest import COMPANY, TENANT, run

from paperdesk.errors import ConflictError, NotFoundError
from paperdesk.models import Paper, Question, QuestionUsage
from paperdesk.storage.inmemory import InMemoryPaperRepository, InMemoryQuestionRepository


def _paper(**overrides) -> Paper:
    fields = dict(tenant_id=TENANT, company_id=COMPANY, title="Weekly Test", template_id="t", created_by="a", updated_by="a")
    fields.update(overrides)
    return Paper(**fields)


class TestPaperRepository:
    def test_save_when_version_matches_then_stored(self):
        # Arrange
        repo = InMemoryPaperRepository()
        paper = run(repo.insert(_paper()))
        paper.title = "Renamed"
        paper.version = 2

        # Act
        run(repo.save(paper, expected_version=1))

        # Assert
        stored = run(repo.load(COMPANY, paper.paper_id))
        assert (stored.title, stored.version) == ("Renamed", 2)

    def test_save_when_version_stale_then_conflict_and_store_unchanged(self):
        repo = InMemoryPaperRepository()
        paper = run(repo.insert(_paper()))
        paper.title = "Lost update"

        with pytest.raises(ConflictError):
            run(repo.save(paper, expected_version=7))
        assert run(repo.load(COMPANY, paper.paper_id)).title == "Weekly Test"

    def test_two_writers_same_version_then_second_conflicts(self):
        repo = InMemoryPaperRepository()
        paper = run(repo.insert(_paper()))
        first = run(repo.load(COMPANY, paper.paper_id))
        second = run(repo.load(COMPANY, paper.paper_id))

        first.version = 2
        run(repo.save(first, expected_version=1))
        second.version = 2
        with pytest.raises(ConflictError):
            run(repo.save(second, expected_version=1))

    def test_load_when_other_company_then_not_found(self):
        repo = InMemoryPaperRepository()
        paper = run(repo.insert(_paper()))
        with pytest.raises(NotFoundError):
            run(repo.load("company-2", paper.paper_id))

    def test_load_returns_copy_not_stored_instance(self):
        repo = InMemoryPaperRepository()
        paper = run(repo.insert(_paper()))
        loaded = run(repo.load(COMPANY, paper.paper_id))
        loaded.title = "Changed locally"
        assert run(repo.load(COMPANY, paper.paper_id)).title == "Weekly Test"

    def test_delete_when_version_stale_then_conflict(self):
        repo = InMemoryPaperRepository()
        paper = run(repo.insert(_paper()))
        with pytest.raises(ConflictError):
            run(repo.delete(COMPANY, paper.paper_id, expected_version=2))
        run(repo.delete(COMPANY, paper.paper_id, expected_version=1))
        with pytest.raises(NotFoundError):
            run(repo.load(COMPANY, paper.paper_id))


class TestQuestionRepository:
    def test_increment_usage_when_concurrent_then_no_lost_updates(self):
        # Arrange
        repo = InMemoryQuestionRepository()
        run(repo.insert(Question(question_id="q1", company_id=COMPANY, type="essay")))

        async def bump_many():
            await asyncio.gather(*(repo.increment_usage("q1", 1) for _ in range(50)))
            await asyncio.gather(*(repo.increment_usage("q1", -1) for _ in range(20)))

        # Act
        run(bump_many())

        # Assert
        assert run(repo.find_by_id(COMPANY, "q1")).usage.paper_count == 30

    def test_increment_usage_when_decrement_arrives_before_increment_then_converges(self):
        # Arrange
        repo = InMemoryQuestionRepository()
        run(repo.insert(Question(question_id="q1", company_id=COMPANY, type="essay")))

        # Act
        run(repo.increment_usage("q1", -1))
        run(repo.increment_usage("q1", 1))

        # Assert
        assert run(repo.find_by_id(COMPANY, "q1")).usage.paper_count == 0

    def test_increment_usage_when_briefly_negative_then_still_loads(self):
        repo = InMemoryQuestionRepository()
        run(repo.insert(Question(question_id="q1", company_id=COMPANY, type="essay", usage=QuestionUsage(paper_count=1))))

        run(repo.increment_usage("q1", -2))

        assert run(repo.find_by_id(COMPANY, "q1")).usage.paper_count == -1

    def test_increment_usage_when_unknown_question_then_not_found(self):
        with pytest.raises(NotFoundError):
            run(InMemoryQuestionRepository().increment_usage("ghost", 1))

    def test_find_many_when_ids_span_companies_then_only_own_returned(self):
        repo = InMemoryQuestionRepository()
        run(repo.insert(Question(question_id="mine", company_id=COMPANY, type="essay")))
        run(repo.insert(Question(question_id="theirs", company_id="company-2", type="essay")))

        scoped = run(repo.find_many(COMPANY, ["mine", "theirs", "mine", "nobody"]))

        assert [q.question_id for q in scoped] == ["mine"]
