"""
Paper lifecycle controller.

Owns the draft -> finalized -> published state machine. Every operation runs
validate -> mutate a copy -> persist (one conditional write keyed on
``version``) -> side effects. Side effects (usage counters, PDF job, blob
clean-up) are best-effort: a failure there is logged and the committed change
stands.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Optional, Sequence

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from paperdesk.blobs.store import BlobStore
from paperdesk.errors import ConflictError, NotFoundError, StateError, ValidationError
from paperdesk.jobs.queue import JobQueue
from paperdesk.models import (
    CreatePaperRequest,
    FinalizeResult,
    NewQuestionRef,
    Paper,
    PaperFilters,
    PaperPage,
    PaperStats,
    PaperStatus,
    PdfArtifact,
    PdfUrlResponse,
    Question,
    Section,
    UpdatePaperRequest,
)
from paperdesk.observability import get_tracer
from paperdesk.papers import numbering
from paperdesk.storage.repo import PaperRepository, QuestionRepository

logger = logging.getLogger(__name__)


def _require_status(paper: Paper, status: PaperStatus) -> None:
    if paper.status != status:
        raise StateError(f"Paper must be in {status.value} status")


def _default_marks(question: Question) -> float:
    return question.metadata.marks if question.metadata.marks > 0 else 1


class PaperService:
    def __init__(
        self,
        papers: PaperRepository,
        questions: QuestionRepository,
        jobs: JobQueue,
        blobs: BlobStore,
        *,
        pdf_url_ttl_seconds: int = 900,
        max_conflict_retries: int = 3,
    ) -> None:
        self.papers = papers
        self.questions = questions
        self.jobs = jobs
        self.blobs = blobs
        self.pdf_url_ttl_seconds = pdf_url_ttl_seconds
        self.max_conflict_retries = max_conflict_retries

    # ----- helpers -----

    @contextmanager
    def _span(self, name: str, company_id: str, paper_id: Optional[str] = None) -> Iterator[None]:
        with get_tracer().start_as_current_span(name) as span:
            span.set_attribute("company.id", company_id)
            if paper_id:
                span.set_attribute("paper.id", paper_id)
            yield

    @staticmethod
    def _section_at(paper: Paper, section_index: int) -> Section:
        if section_index < 0:
            raise ValidationError("Invalid section index")
        if section_index >= len(paper.sections):
            raise NotFoundError(f"Section {section_index} not found")
        return paper.sections[section_index]

    async def _resolve_questions(self, company_id: str, question_ids: Iterable[str]) -> dict[str, Question]:
        wanted = list(dict.fromkeys(question_ids))
        found = {q.question_id: q for q in await self.questions.find_many(company_id, wanted) if not q.is_archived}
        missing = [qid for qid in wanted if qid not in found]
        if missing:
            raise NotFoundError(f"One or more questions not found or archived: {', '.join(missing)}")
        return found

    async def _commit(self, paper: Paper, expected_version: int, actor: str) -> Paper:
        paper.total_marks, paper.total_time = numbering.compute_totals(paper.sections)
        paper.version = expected_version + 1
        paper.updated_by = actor
        paper.updated_at = datetime.utcnow()
        return await self.papers.save(paper, expected_version)

    async def _apply_usage(self, paper_id: str, deltas: Iterable[tuple[str, int]]) -> None:
        for question_id, delta in deltas:
            try:
                await self.questions.increment_usage(question_id, delta)
            except Exception:
                logger.exception(
                    f"Usage counter update {delta:+d} failed for question {question_id} (paper {paper_id})"
                )

    async def _discard_blobs(self, paper_id: str, keys: Iterable[str]) -> None:
        for key in keys:
            try:
                await self.blobs.delete(key)
            except Exception:
                logger.exception(f"Failed to delete PDF artifact {key} of paper {paper_id}")

    # ----- queries -----

    async def get_paper(self, company_id: str, paper_id: str) -> Paper:
        return await self.papers.load(company_id, paper_id)

    async def list_papers(self, company_id: str, filters: Optional[PaperFilters] = None) -> PaperPage:
        filters = filters or PaperFilters()
        papers, total = await self.papers.list(company_id, filters)
        return PaperPage(papers=papers, total=total, page=filters.page, limit=filters.limit)

    async def get_paper_stats(self, company_id: str) -> PaperStats:
        return await self.papers.stats(company_id)

    async def get_pdf_download_url(self, company_id: str, paper_id: str, kind: str) -> PdfUrlResponse:
        paper = await self.papers.load(company_id, paper_id)
        artifact = next((p for p in paper.pdfs if p.kind == kind), None)
        if artifact is None:
            raise NotFoundError(f"PDF of type \"{kind}\" not found")
        url = await self.blobs.signed_url(artifact.storage_key, self.pdf_url_ttl_seconds)
        return PdfUrlResponse(kind=kind, url=url, expires_in=self.pdf_url_ttl_seconds)

    # ----- create / update / delete -----

    async def create_paper(self, company_id: str, req: CreatePaperRequest, actor: str) -> Paper:
        with self._span("paper.create", company_id):
            for section in req.sections:
                numbering.check_numbering(section)
            referenced = numbering.reference_counts(req.sections)
            if referenced:
                await self._resolve_questions(company_id, referenced)

            paper = Paper(
                tenant_id=req.tenant_id,
                company_id=company_id,
                title=req.title,
                description=req.description,
                template_id=req.template_id,
                sections=[s.model_copy(deep=True) for s in req.sections],
                created_by=actor,
                updated_by=actor,
            )
            paper.total_marks, paper.total_time = numbering.compute_totals(paper.sections)
            await self.papers.insert(paper)

            await self._apply_usage(paper.paper_id, numbering.usage_deltas([], paper.sections).items())
            logger.info(f"{actor} created paper {paper.paper_id} for company {company_id}")
            return paper

    async def update_paper(self, company_id: str, paper_id: str, req: UpdatePaperRequest, actor: str) -> Paper:
        with self._span("paper.update", company_id, paper_id):
            paper = await self.papers.load(company_id, paper_id)
            _require_status(paper, PaperStatus.draft)
            if req.version is not None and req.version != paper.version:
                raise ConflictError("Paper has been modified by another user. Please refresh and try again.")

            deltas: dict[str, int] = {}
            if req.sections is not None:
                for section in req.sections:
                    numbering.check_numbering(section)
                deltas = numbering.usage_deltas(paper.sections, req.sections)
                added = [qid for qid, delta in deltas.items() if delta > 0]
                if added:
                    await self._resolve_questions(company_id, added)

            updated = paper.model_copy(deep=True)
            if req.title is not None:
                updated.title = req.title
            if req.description is not None:
                updated.description = req.description
            if req.template_id is not None:
                updated.template_id = req.template_id
            if req.sections is not None:
                updated.sections = [s.model_copy(deep=True) for s in req.sections]

            saved = await self._commit(updated, paper.version, actor)
            await self._apply_usage(paper_id, deltas.items())
            return saved

    async def delete_paper(self, company_id: str, paper_id: str) -> None:
        with self._span("paper.delete", company_id, paper_id):
            paper = await self.papers.load(company_id, paper_id)
            _require_status(paper, PaperStatus.draft)
            await self.papers.delete(company_id, paper_id, paper.version)

            await self._apply_usage(paper_id, numbering.usage_deltas(paper.sections, []).items())
            await self._discard_blobs(paper_id, [p.storage_key for p in paper.pdfs])
            logger.info(f"Deleted paper {paper_id} for company {company_id}")

    # ----- structural edits -----

    async def add_questions_to_section(
        self,
        company_id: str,
        paper_id: str,
        section_index: int,
        question_ids: Sequence[str],
        actor: str,
    ) -> Paper:
        with self._span("paper.add_questions", company_id, paper_id):
            if not question_ids:
                raise ValidationError("question_ids must not be empty")
            paper = await self.papers.load(company_id, paper_id)
            _require_status(paper, PaperStatus.draft)
            section = self._section_at(paper, section_index)

            questions = await self._resolve_questions(company_id, question_ids)
            new_refs = [
                NewQuestionRef(question_id=qid, marks=_default_marks(questions[qid])) for qid in question_ids
            ]
            new_section, added = numbering.add_questions(section, new_refs)

            updated = paper.model_copy(deep=True)
            updated.sections[section_index] = new_section
            saved = await self._commit(updated, paper.version, actor)

            await self._apply_usage(paper_id, [(qid, 1) for qid in added])
            return saved

    async def remove_question_from_section(
        self,
        company_id: str,
        paper_id: str,
        section_index: int,
        question_number: int,
        actor: str,
    ) -> Paper:
        with self._span("paper.remove_question", company_id, paper_id):
            paper = await self.papers.load(company_id, paper_id)
            _require_status(paper, PaperStatus.draft)
            section = self._section_at(paper, section_index)

            new_section, removed_id = numbering.remove_question(section, question_number)

            updated = paper.model_copy(deep=True)
            updated.sections[section_index] = new_section
            saved = await self._commit(updated, paper.version, actor)

            await self._apply_usage(paper_id, [(removed_id, -1)])
            return saved

    async def swap_question(
        self,
        company_id: str,
        paper_id: str,
        section_index: int,
        question_number: int,
        new_question_id: str,
        actor: str,
        marks: Optional[float] = None,
    ) -> Paper:
        with self._span("paper.swap_question", company_id, paper_id):
            paper = await self.papers.load(company_id, paper_id)
            _require_status(paper, PaperStatus.draft)
            section = self._section_at(paper, section_index)

            question = await self.questions.find_by_id(company_id, new_question_id)
            if question is None or question.is_archived:
                raise NotFoundError("New question not found or archived")

            new_marks = marks if marks is not None else _default_marks(question)
            new_section, old_id, new_id = numbering.swap_question(
                section, question_number, new_question_id, new_marks
            )

            updated = paper.model_copy(deep=True)
            updated.sections[section_index] = new_section
            saved = await self._commit(updated, paper.version, actor)

            await self._apply_usage(paper_id, [(old_id, -1), (new_id, 1)])
            return saved

    async def reorder_questions_in_section(
        self,
        company_id: str,
        paper_id: str,
        section_index: int,
        ordered_question_numbers: Sequence[int],
        actor: str,
    ) -> Paper:
        with self._span("paper.reorder", company_id, paper_id):
            paper = await self.papers.load(company_id, paper_id)
            _require_status(paper, PaperStatus.draft)
            section = self._section_at(paper, section_index)

            updated = paper.model_copy(deep=True)
            updated.sections[section_index] = numbering.reorder(section, ordered_question_numbers)
            return await self._commit(updated, paper.version, actor)

    # ----- status transitions -----

    async def finalize_paper(self, company_id: str, paper_id: str, actor: str) -> FinalizeResult:
        with self._span("paper.finalize", company_id, paper_id):
            paper = await self.papers.load(company_id, paper_id)
            _require_status(paper, PaperStatus.draft)

            if not paper.sections:
                raise ValidationError("Paper must have at least one section")
            for section in paper.sections:
                if not section.questions:
                    raise ValidationError(f"Section \"{section.name}\" has no questions")

            updated = paper.model_copy(deep=True)
            updated.status = PaperStatus.finalized
            saved = await self._commit(updated, paper.version, actor)

            job_id: Optional[str] = None
            try:
                job_id = await self.jobs.submit_pdf_job(saved.paper_id, saved.tenant_id, saved.company_id)
            except Exception:
                logger.exception(f"PDF job submission failed for finalized paper {paper_id}")

            logger.info(f"{actor} finalized paper {paper_id} (pdf job {job_id})")
            return FinalizeResult(paper=saved, job_id=job_id)

    async def unfinalize_paper(self, company_id: str, paper_id: str, actor: str) -> Paper:
        with self._span("paper.unfinalize", company_id, paper_id):
            paper = await self.papers.load(company_id, paper_id)
            _require_status(paper, PaperStatus.finalized)

            # Already-submitted PDF jobs are left running; only stored artifacts go.
            updated = paper.model_copy(deep=True)
            updated.status = PaperStatus.draft
            updated.pdfs = []
            saved = await self._commit(updated, paper.version, actor)

            await self._discard_blobs(paper_id, [p.storage_key for p in paper.pdfs])
            return saved

    async def publish_paper(self, company_id: str, paper_id: str, actor: str) -> Paper:
        with self._span("paper.publish", company_id, paper_id):
            paper = await self.papers.load(company_id, paper_id)
            _require_status(paper, PaperStatus.finalized)

            updated = paper.model_copy(deep=True)
            updated.status = PaperStatus.published
            saved = await self._commit(updated, paper.version, actor)
            logger.info(f"{actor} published paper {paper_id}")
            return saved

    async def record_pdf_artifact(
        self,
        company_id: str,
        paper_id: str,
        artifact: PdfArtifact,
        actor: str = "pdf-worker",
    ) -> Paper:
        """Attach a generated PDF, replacing any earlier one of the same kind.

        Called when a PDF job completes, so version conflicts with concurrent
        edits are retried here instead of being bounced to the worker.
        """
        with self._span("paper.record_pdf", company_id, paper_id):
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_conflict_retries + 1),
                wait=wait_exponential(multiplier=0.05, max=1),
                retry=retry_if_exception_type(ConflictError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    return await self._attach_pdf(company_id, paper_id, artifact, actor)

    async def _attach_pdf(self, company_id: str, paper_id: str, artifact: PdfArtifact, actor: str) -> Paper:
        paper = await self.papers.load(company_id, paper_id)
        if paper.status not in (PaperStatus.finalized, PaperStatus.published):
            raise StateError("Paper must be in finalized status")

        replaced = [p.storage_key for p in paper.pdfs if p.kind == artifact.kind]
        updated = paper.model_copy(deep=True)
        updated.pdfs = [p for p in updated.pdfs if p.kind != artifact.kind] + [artifact]
        saved = await self._commit(updated, paper.version, actor)

        await self._discard_blobs(paper_id, [k for k in replaced if k != artifact.storage_key])
        return saved
