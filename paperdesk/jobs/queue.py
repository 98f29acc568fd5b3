from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from uuid import uuid4

from pydantic import BaseModel, Field
from redis import Redis
from redis.exceptions import RedisError
from rq import Queue

from paperdesk.errors import DependencyError


class PdfJob(BaseModel):
    job_id: str = Field(default_factory=lambda: str(uuid4()))
    paper_id: str
    tenant_id: str
    company_id: str


class JobQueue(ABC):
    @abstractmethod
    async def submit_pdf_job(self, paper_id: str, tenant_id: str, company_id: str) -> str:
        """Enqueue PDF generation for a paper and return the job id without waiting on it."""
        raise NotImplementedError


class InMemoryJobQueue(JobQueue):
    def __init__(self) -> None:
        self.jobs: list[PdfJob] = []

    async def submit_pdf_job(self, paper_id: str, tenant_id: str, company_id: str) -> str:
        job = PdfJob(paper_id=paper_id, tenant_id=tenant_id, company_id=company_id)
        self.jobs.append(job)
        return job.job_id


class RQJobQueue(JobQueue):
    """Redis-backed queue; the PDF worker process consumes ``func_path`` jobs."""

    def __init__(self, redis_url: str, queue_name: str, func_path: str) -> None:
        self.queue = Queue(queue_name, connection=Redis.from_url(redis_url))
        self.func_path = func_path

    def _enqueue(self, paper_id: str, tenant_id: str, company_id: str) -> str:
        job = self.queue.enqueue(
            self.func_path,
            kwargs={"paper_id": paper_id, "tenant_id": tenant_id, "company_id": company_id},
        )
        return job.id

    async def submit_pdf_job(self, paper_id: str, tenant_id: str, company_id: str) -> str:
        try:
            return await asyncio.to_thread(self._enqueue, paper_id, tenant_id, company_id)
        except RedisError as e:
            raise DependencyError(f"PDF queue unavailable: {e}") from e
