from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Response, status

from paperdesk.models import (
    AddQuestionsRequest,
    CreatePaperRequest,
    FinalizeResult,
    Paper,
    PaperFilters,
    PaperPage,
    PaperStats,
    PaperStatus,
    PdfArtifact,
    PdfUrlResponse,
    ReorderRequest,
    SwapQuestionRequest,
    UpdatePaperRequest,
)
from paperdesk.papers.service import PaperService
from paperdesk.wiring import get_paper_service

router = APIRouter(prefix="/companies/{company_id}/papers", tags=["papers"])


def get_actor(x_actor_id: Optional[str] = Header(default=None)) -> str:
    # Identity is resolved upstream; we only record who made the change.
    return x_actor_id or "system"


@router.post("", response_model=Paper, status_code=status.HTTP_201_CREATED)
async def create_paper(
    company_id: str,
    req: CreatePaperRequest,
    actor: str = Depends(get_actor),
    service: PaperService = Depends(get_paper_service),
) -> Paper:
    return await service.create_paper(company_id, req, actor)


@router.get("", response_model=PaperPage)
async def list_papers(
    company_id: str,
    paper_status: Optional[PaperStatus] = Query(default=None, alias="status"),
    search: Optional[str] = Query(default=None, max_length=200),
    template_id: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort_by: str = Query(default="created_at", pattern="^(created_at|title|total_marks|updated_at)$"),
    sort_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    service: PaperService = Depends(get_paper_service),
) -> PaperPage:
    filters = PaperFilters(
        status=paper_status,
        search=search,
        template_id=template_id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_dir=sort_dir,
    )
    return await service.list_papers(company_id, filters)


@router.get("/stats", response_model=PaperStats)
async def paper_stats(company_id: str, service: PaperService = Depends(get_paper_service)) -> PaperStats:
    return await service.get_paper_stats(company_id)


@router.get("/{paper_id}", response_model=Paper)
async def get_paper(company_id: str, paper_id: str, service: PaperService = Depends(get_paper_service)) -> Paper:
    return await service.get_paper(company_id, paper_id)


@router.patch("/{paper_id}", response_model=Paper)
async def update_paper(
    company_id: str,
    paper_id: str,
    req: UpdatePaperRequest,
    actor: str = Depends(get_actor),
    service: PaperService = Depends(get_paper_service),
) -> Paper:
    return await service.update_paper(company_id, paper_id, req, actor)


@router.delete("/{paper_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_paper(
    company_id: str, paper_id: str, service: PaperService = Depends(get_paper_service)
) -> Response:
    await service.delete_paper(company_id, paper_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{paper_id}/sections/{section_index}/questions", response_model=Paper)
async def add_questions(
    company_id: str,
    paper_id: str,
    section_index: int,
    req: AddQuestionsRequest,
    actor: str = Depends(get_actor),
    service: PaperService = Depends(get_paper_service),
) -> Paper:
    return await service.add_questions_to_section(company_id, paper_id, section_index, req.question_ids, actor)


@router.delete("/{paper_id}/sections/{section_index}/questions/{question_number}", response_model=Paper)
async def remove_question(
    company_id: str,
    paper_id: str,
    section_index: int,
    question_number: int,
    actor: str = Depends(get_actor),
    service: PaperService = Depends(get_paper_service),
) -> Paper:
    return await service.remove_question_from_section(company_id, paper_id, section_index, question_number, actor)


@router.post("/{paper_id}/sections/{section_index}/questions/{question_number}/swap", response_model=Paper)
async def swap_question(
    company_id: str,
    paper_id: str,
    section_index: int,
    question_number: int,
    req: SwapQuestionRequest,
    actor: str = Depends(get_actor),
    service: PaperService = Depends(get_paper_service),
) -> Paper:
    return await service.swap_question(
        company_id, paper_id, section_index, question_number, req.new_question_id, actor, marks=req.marks
    )


@router.post("/{paper_id}/sections/{section_index}/reorder", response_model=Paper)
async def reorder_questions(
    company_id: str,
    paper_id: str,
    section_index: int,
    req: ReorderRequest,
    actor: str = Depends(get_actor),
    service: PaperService = Depends(get_paper_service),
) -> Paper:
    return await service.reorder_questions_in_section(
        company_id, paper_id, section_index, req.ordered_question_numbers, actor
    )


@router.post("/{paper_id}/finalize", response_model=FinalizeResult)
async def finalize_paper(
    company_id: str,
    paper_id: str,
    actor: str = Depends(get_actor),
    service: PaperService = Depends(get_paper_service),
) -> FinalizeResult:
    return await service.finalize_paper(company_id, paper_id, actor)


@router.post("/{paper_id}/unfinalize", response_model=Paper)
async def unfinalize_paper(
    company_id: str,
    paper_id: str,
    actor: str = Depends(get_actor),
    service: PaperService = Depends(get_paper_service),
) -> Paper:
    return await service.unfinalize_paper(company_id, paper_id, actor)


@router.post("/{paper_id}/publish", response_model=Paper)
async def publish_paper(
    company_id: str,
    paper_id: str,
    actor: str = Depends(get_actor),
    service: PaperService = Depends(get_paper_service),
) -> Paper:
    return await service.publish_paper(company_id, paper_id, actor)


@router.post("/{paper_id}/pdfs", response_model=Paper)
async def record_pdf(
    company_id: str,
    paper_id: str,
    artifact: PdfArtifact,
    service: PaperService = Depends(get_paper_service),
) -> Paper:
    return await service.record_pdf_artifact(company_id, paper_id, artifact)


@router.get("/{paper_id}/pdfs/{kind}/url", response_model=PdfUrlResponse)
async def pdf_download_url(
    company_id: str, paper_id: str, kind: str, service: PaperService = Depends(get_paper_service)
) -> PdfUrlResponse:
    return await service.get_pdf_download_url(company_id, paper_id, kind)
