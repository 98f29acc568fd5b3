from __future__ import annotations

import logging
from typing import Iterable

from paperdesk.grading.rules import grade
from paperdesk.models import Attempt, AttemptAnswer, AttemptSummary, Question
from paperdesk.observability import get_tracer
from paperdesk.storage.repo import QuestionRepository

logger = logging.getLogger(__name__)


def grade_attempt(attempt: Attempt, questions: Iterable[Question]) -> list[AttemptAnswer]:
    """Auto-grade every answer of ``attempt`` in place.

    Answers whose question is missing from ``questions`` (stale or deleted
    reference) are left ungraded. Persisting the attempt is up to the caller.
    """
    by_id = {q.question_id: q for q in questions}

    with get_tracer().start_as_current_span("attempt.grade") as span:
        span.set_attribute("attempt.id", attempt.attempt_id)
        span.set_attribute("attempt.answers", len(attempt.answers))

        for answer in attempt.answers:
            question = by_id.get(answer.question_id)
            if question is None:
                answer.is_correct = None
                answer.marks_awarded = None
                continue

            try:
                result = grade(question.type, question.content, question.metadata.marks, answer.answer)
            except Exception:
                logger.exception(
                    f"Grading failed for attempt {attempt.attempt_id}, question {answer.question_id}"
                )
                answer.is_correct = None
                answer.marks_awarded = None
                continue

            answer.is_correct = result.is_correct
            answer.marks_awarded = result.marks_awarded

    return attempt.answers


def summarize_attempt(answers: Iterable[AttemptAnswer]) -> AttemptSummary:
    summary = AttemptSummary()
    for answer in answers:
        summary.max_marks += answer.max_marks
        if answer.marks_awarded is None:
            summary.pending_manual += 1
        else:
            summary.auto_graded += 1
            summary.marks_obtained += answer.marks_awarded

    if summary.max_marks > 0:
        summary.percentage = round(summary.marks_obtained / summary.max_marks * 100, 2)
    return summary


async def grade_attempt_from_store(
    company_id: str, attempt: Attempt, questions: QuestionRepository
) -> AttemptSummary:
    """Pull the attempt's questions from the company's bank, grade, and summarise."""
    found = await questions.find_many(company_id, (a.question_id for a in attempt.answers))
    grade_attempt(attempt, found)
    return summarize_attempt(attempt.answers)
