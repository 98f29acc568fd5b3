from paperdesk.grading.attempt import grade_attempt, grade_attempt_from_store, summarize_attempt
from paperdesk.grading.rules import SUBJECTIVE_TYPES, grade, grade_for_feedback, is_auto_gradable

__all__ = [
    "SUBJECTIVE_TYPES",
    "grade",
    "grade_attempt",
    "grade_attempt_from_store",
    "grade_for_feedback",
    "is_auto_gradable",
    "summarize_attempt",
]
