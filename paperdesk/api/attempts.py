from __future__ import annotations

from fastapi import APIRouter, Depends

from paperdesk.grading.attempt import grade_attempt_from_store
from paperdesk.models import Attempt, GradeAttemptResponse
from paperdesk.storage.repo import QuestionRepository
from paperdesk.wiring import get_question_repo

router = APIRouter(prefix="/companies/{company_id}/attempts", tags=["attempts"])


@router.post("/grade", response_model=GradeAttemptResponse)
async def grade_attempt(
    company_id: str, attempt: Attempt, questions: QuestionRepository = Depends(get_question_repo)
) -> GradeAttemptResponse:
    # Grading only; the caller persists the returned attempt.
    summary = await grade_attempt_from_store(company_id, attempt, questions)
    return GradeAttemptResponse(attempt=attempt, summary=summary)
