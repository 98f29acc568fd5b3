from __future__ import annotations

from functools import lru_cache

from motor.motor_asyncio import AsyncIOMotorClient

from paperdesk.blobs.store import BlobStore, InMemoryBlobStore, S3BlobStore
from paperdesk.jobs.queue import InMemoryJobQueue, JobQueue, RQJobQueue
from paperdesk.papers.service import PaperService
from paperdesk.settings import settings
from paperdesk.storage.inmemory import InMemoryPaperRepository, InMemoryQuestionRepository
from paperdesk.storage.mongo import MongoPaperRepository, MongoQuestionRepository
from paperdesk.storage.repo import PaperRepository, QuestionRepository


@lru_cache
def _mongo_client() -> AsyncIOMotorClient:
    return AsyncIOMotorClient(settings.mongodb_uri)


@lru_cache
def get_paper_repo() -> PaperRepository:
    if (settings.storage_backend or "inmemory").lower() == "mongo":
        return MongoPaperRepository(_mongo_client(), settings.mongodb_db)
    return InMemoryPaperRepository()


@lru_cache
def get_question_repo() -> QuestionRepository:
    if (settings.storage_backend or "inmemory").lower() == "mongo":
        return MongoQuestionRepository(_mongo_client(), settings.mongodb_db)
    return InMemoryQuestionRepository()


@lru_cache
def get_job_queue() -> JobQueue:
    if (settings.job_backend or "inmemory").lower() == "rq":
        return RQJobQueue(settings.redis_url, settings.rq_queue, settings.pdf_job_func)
    return InMemoryJobQueue()


@lru_cache
def get_blob_store() -> BlobStore:
    if (settings.blob_backend or "inmemory").lower() == "s3":
        return S3BlobStore(settings.s3_bucket, settings.s3_region, settings.s3_endpoint_url)
    return InMemoryBlobStore()


@lru_cache
def get_paper_service() -> PaperService:
    return PaperService(
        get_paper_repo(),
        get_question_repo(),
        get_job_queue(),
        get_blob_store(),
        pdf_url_ttl_seconds=settings.pdf_url_ttl_seconds,
        max_conflict_retries=settings.max_conflict_retries,
    )
