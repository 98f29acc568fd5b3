"""
Auto-grading rules.

Pure functions that score one submitted answer against a question's answer
key. Dispatch is by question type over a closed table; subjective and unknown
types are never scored and come back as (None, None) for manual grading.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, DecimalException, InvalidOperation
from fractions import Fraction
from math import floor
from typing import Any, Callable, Optional, Union

from paperdesk.models import FeedbackResult, GradeResult, Question, QuestionContent, QuestionType

SUBJECTIVE_TYPES: frozenset[QuestionType] = frozenset(
    {
        QuestionType.short_answer,
        QuestionType.long_answer,
        QuestionType.essay,
        QuestionType.creative_writing,
    }
)

AnswerKey = Union[QuestionContent, Mapping[str, Any]]
Grader = Callable[[QuestionContent, float, Any], GradeResult]


def _result(is_correct: bool, marks: float) -> GradeResult:
    return GradeResult(is_correct=is_correct, marks_awarded=marks if is_correct else 0)


def _as_index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "false"):
            return text == "true"
    return None


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def _normalize_text(value: Any) -> str:
    return str(value).strip().lower()


def _round_half_up(value: Fraction) -> int:
    return floor(value + Fraction(1, 2))


def _grade_mcq_single(key: QuestionContent, marks: float, submitted: Any) -> GradeResult:
    index = _as_index(submitted)
    return _result(index is not None and index == key.correct_option_index, marks)


def _grade_mcq_multiple(key: QuestionContent, marks: float, submitted: Any) -> GradeResult:
    if not isinstance(submitted, (list, tuple, set, frozenset)):
        return _result(False, marks)
    chosen = {_as_index(v) for v in submitted}
    correct = set(key.correct_option_indices or [])
    # An empty key never matches; an empty submission is always wrong.
    return _result(bool(correct) and chosen == correct, marks)


def _grade_true_false(key: QuestionContent, marks: float, submitted: Any) -> GradeResult:
    expected = _as_bool(key.correct_answer)
    given = _as_bool(submitted)
    return _result(expected is not None and given is not None and expected == given, marks)


def _grade_fill_in_blank(key: QuestionContent, marks: float, submitted: Any) -> GradeResult:
    given = _normalize_text(submitted)
    if key.accepted_answers is not None:
        accepted = {_normalize_text(a) for a in key.accepted_answers}
        return _result(given in accepted, marks)
    if key.correct_answer is None:
        return _result(False, marks)
    return _result(given == _normalize_text(key.correct_answer), marks)


def _grade_numerical(key: QuestionContent, marks: float, submitted: Any) -> GradeResult:
    given = _as_decimal(submitted)
    expected = _as_decimal(key.correct_answer)
    if given is None or expected is None:
        return _result(False, marks)
    tolerance = _as_decimal(key.tolerance) or Decimal(0)
    try:
        within = abs(given - expected) <= abs(tolerance)
    except DecimalException:
        # Outside the context's exponent range, e.g. "1e999999999".
        return _result(False, marks)
    return _result(within, marks)


def _grade_match_the_column(key: QuestionContent, marks: float, submitted: Any) -> GradeResult:
    pairs = key.correct_pairs or {}
    if not pairs or not isinstance(submitted, Mapping):
        return GradeResult(is_correct=False, marks_awarded=0)

    matched = sum(
        1 for left, right in pairs.items() if left in submitted and str(submitted[left]) == str(right)
    )
    ratio = Fraction(matched, len(pairs))
    awarded = _round_half_up(Fraction(Decimal(str(marks))) * ratio)
    # Partial marks still report is_correct=False: exact vs partial.
    return GradeResult(is_correct=matched == len(pairs), marks_awarded=awarded)


_GRADERS: dict[QuestionType, Grader] = {
    QuestionType.mcq_single: _grade_mcq_single,
    QuestionType.mcq_multiple: _grade_mcq_multiple,
    QuestionType.true_false: _grade_true_false,
    QuestionType.fill_in_blank: _grade_fill_in_blank,
    QuestionType.numerical: _grade_numerical,
    QuestionType.match_the_column: _grade_match_the_column,
}


def _resolve_type(question_type: Union[str, QuestionType]) -> Optional[QuestionType]:
    try:
        return QuestionType(question_type)
    except ValueError:
        return None


def _coerce_key(answer_key: Optional[AnswerKey]) -> QuestionContent:
    if isinstance(answer_key, QuestionContent):
        return answer_key
    return QuestionContent.model_validate(dict(answer_key or {}))


def is_auto_gradable(question_type: Union[str, QuestionType]) -> bool:
    return _resolve_type(question_type) in _GRADERS


def grade(
    question_type: Union[str, QuestionType],
    answer_key: Optional[AnswerKey],
    marks: float,
    submitted: Any,
) -> GradeResult:
    """Score ``submitted`` against ``answer_key`` for a question worth ``marks``.

    Objective types always return a boolean and a number (a missing answer is
    wrong and earns 0). Subjective and unrecognised types return
    ``GradeResult(is_correct=None, marks_awarded=None)``.
    """
    resolved = _resolve_type(question_type)
    grader = _GRADERS.get(resolved) if resolved is not None else None
    if grader is None:
        return GradeResult()

    if submitted is None:
        return GradeResult(is_correct=False, marks_awarded=0)

    return grader(_coerce_key(answer_key), marks, submitted)


def correct_answer_for(question_type: Union[str, QuestionType], content: QuestionContent) -> Any:
    resolved = _resolve_type(question_type)
    if resolved == QuestionType.mcq_single:
        return content.correct_option_index
    if resolved == QuestionType.mcq_multiple:
        return content.correct_option_indices
    if resolved == QuestionType.fill_in_blank:
        return content.accepted_answers if content.accepted_answers is not None else content.correct_answer
    if resolved in (QuestionType.true_false, QuestionType.numerical):
        return content.correct_answer
    if resolved == QuestionType.match_the_column:
        return content.correct_pairs
    return None


def grade_for_feedback(
    question_type: Union[str, QuestionType],
    submitted: Any,
    question: Question,
) -> FeedbackResult:
    """Grade one answer and echo the canonical answer, solution and explanation."""
    content = question.content
    result = grade(question_type, content, question.metadata.marks, submitted)
    return FeedbackResult(
        is_correct=result.is_correct,
        marks_awarded=result.marks_awarded,
        correct_answer=correct_answer_for(question_type, content),
        solution=content.solution or "",
        explanation=content.explanation or "",
    )
