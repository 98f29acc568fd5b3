"""
Question numbering within a section.

Every function works on a copy of the section it is given and returns the new
section together with the question ids whose usage counters must change. On
error nothing is returned and the input is untouched.

Numbers stay 1..N after every operation. The list order is the display
order: a reorder keeps each reference's number, and a removal renumbers the
remaining references by display position.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from paperdesk.errors import NotFoundError, ValidationError
from paperdesk.models import NewQuestionRef, QuestionRef, Section


def _position_of(section: Section, question_number: int) -> int:
    for i, ref in enumerate(section.questions):
        if ref.question_number == question_number:
            return i
    raise NotFoundError(f"Question {question_number} not found in section \"{section.name}\"")


def check_numbering(section: Section) -> None:
    numbers = sorted(ref.question_number for ref in section.questions)
    if numbers != list(range(1, len(numbers) + 1)):
        raise ValidationError(
            f"Section \"{section.name}\" question numbers must run 1..{len(numbers)} without gaps"
        )


def add_questions(section: Section, new_refs: Sequence[NewQuestionRef]) -> tuple[Section, list[str]]:
    """Append ``new_refs`` in order, numbering them after the current maximum."""
    updated = section.model_copy(deep=True)
    next_number = max((ref.question_number for ref in updated.questions), default=0) + 1

    added: list[str] = []
    for new_ref in new_refs:
        updated.questions.append(
            QuestionRef(
                question_id=new_ref.question_id,
                question_number=next_number,
                marks=new_ref.marks,
                is_required=new_ref.is_required,
            )
        )
        added.append(new_ref.question_id)
        next_number += 1

    return updated, added


def remove_question(section: Section, question_number: int) -> tuple[Section, str]:
    """Drop the reference numbered ``question_number`` and renumber the rest 1..N in display order."""
    position = _position_of(section, question_number)

    updated = section.model_copy(deep=True)
    removed = updated.questions.pop(position)
    for number, ref in enumerate(updated.questions, start=1):
        ref.question_number = number

    return updated, removed.question_id


def swap_question(
    section: Section,
    question_number: int,
    new_question_id: str,
    new_marks: float,
) -> tuple[Section, str, str]:
    """Replace the question at ``question_number`` keeping its number and position."""
    position = _position_of(section, question_number)
    if not new_question_id:
        raise ValidationError("new_question_id is required")
    if new_marks is None or new_marks <= 0:
        raise ValidationError("marks must be a positive number")

    updated = section.model_copy(deep=True)
    old = updated.questions[position]
    updated.questions[position] = QuestionRef(
        question_id=new_question_id,
        question_number=question_number,
        marks=new_marks,
        is_required=old.is_required,
    )
    return updated, old.question_id, new_question_id


def reorder(section: Section, ordered_question_numbers: Sequence[int]) -> Section:
    """Put references in the given display order; numbers do not change."""
    by_number = {ref.question_number: ref for ref in section.questions}
    if len(ordered_question_numbers) != len(by_number) or set(ordered_question_numbers) != set(by_number):
        raise ValidationError(
            f"Reorder must list each question number of section \"{section.name}\" exactly once"
        )

    updated = section.model_copy(deep=True)
    by_number = {ref.question_number: ref for ref in updated.questions}
    updated.questions = [by_number[n] for n in ordered_question_numbers]
    return updated


def compute_totals(sections: Iterable[Section]) -> tuple[float, int]:
    total_marks: float = 0
    total_time = 0
    for section in sections:
        total_time += section.time_limit or 0
        for ref in section.questions:
            total_marks += ref.marks
    return total_marks, total_time


def reference_counts(sections: Iterable[Section]) -> Counter[str]:
    return Counter(ref.question_id for section in sections for ref in section.questions)


def usage_deltas(before: Iterable[Section], after: Iterable[Section]) -> dict[str, int]:
    """Per-question change in reference count between two section lists."""
    old = reference_counts(before)
    new = reference_counts(after)
    deltas = {qid: new[qid] - old[qid] for qid in old.keys() | new.keys()}
    return {qid: delta for qid, delta in sorted(deltas.items()) if delta}
