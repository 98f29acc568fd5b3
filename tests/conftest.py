import asyncio
import os
import sys
from pathlib import Path

import pytest

# Keep tests off the network and out of the OTLP exporter
os.environ.setdefault("OBSERVABILITY_ENABLED", "false")
os.environ.setdefault("STORAGE_BACKEND", "inmemory")
os.environ.setdefault("JOB_BACKEND", "inmemory")
os.environ.setdefault("BLOB_BACKEND", "inmemory")

# Add repo root to sys.path so we can import paperdesk without installing it
ROOT_PATH = Path(__file__).resolve().parent.parent
if ROOT_PATH.as_posix() not in sys.path:
    sys.path.insert(0, ROOT_PATH.as_posix())

from paperdesk.blobs.store import InMemoryBlobStore  # noqa: E402
from paperdesk.errors import DependencyError  # noqa: E402
from paperdesk.jobs.queue import InMemoryJobQueue  # noqa: E402
from paperdesk.models import (  # noqa: E402
    CreatePaperRequest,
    Question,
    QuestionContent,
    QuestionMetadata,
    Section,
)
from paperdesk.papers.service import PaperService  # noqa: E402
from paperdesk.storage.inmemory import InMemoryPaperRepository, InMemoryQuestionRepository  # noqa: E402

COMPANY = "company-1"
TENANT = "tenant-1"
ACTOR = "instructor@example.com"


def run(coro):
    """Drive an async service call from a sync test."""
    return asyncio.run(coro)


class RecordingQuestionRepository(InMemoryQuestionRepository):
    """In-memory bank that remembers every usage delta it was sent."""

    def __init__(self) -> None:
        super().__init__()
        self.usage_calls: list[tuple[str, int]] = []
        self.fail_usage = False

    async def increment_usage(self, question_id: str, delta: int) -> None:
        self.usage_calls.append((question_id, delta))
        if self.fail_usage:
            raise DependencyError("question store unreachable")
        await super().increment_usage(question_id, delta)


class FailingJobQueue(InMemoryJobQueue):
    async def submit_pdf_job(self, paper_id: str, tenant_id: str, company_id: str) -> str:
        raise DependencyError("queue unreachable")


@pytest.fixture
def questions():
    return RecordingQuestionRepository()


@pytest.fixture
def papers():
    return InMemoryPaperRepository()


@pytest.fixture
def jobs():
    return InMemoryJobQueue()


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
def service(papers, questions, jobs, blobs):
    return PaperService(papers, questions, jobs, blobs, pdf_url_ttl_seconds=900, max_conflict_retries=2)


@pytest.fixture
def make_question(questions):
    """Insert a question into the bank and return it."""

    def _make(question_id: str, marks: float = 2, qtype: str = "mcq_single", **content) -> Question:
        question = Question(
            question_id=question_id,
            company_id=COMPANY,
            type=qtype,
            content=QuestionContent(**content),
            metadata=QuestionMetadata(marks=marks),
        )
        run(questions.insert(question))
        return question

    return _make


@pytest.fixture
def draft_paper(service, make_question):
    """A draft paper with two empty sections and a small question bank."""
    for qid in ("q1", "q2", "q3", "q4"):
        make_question(qid, marks=2)
    req = CreatePaperRequest(
        tenant_id=TENANT,
        title="Unit Test 1",
        template_id="template-1",
        sections=[
            Section(name="Part A", time_limit=30),
            Section(name="Part B", time_limit=45),
        ],
    )
    return run(service.create_paper(COMPANY, req, ACTOR))
