from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class QuestionType(str, Enum):
    mcq_single = "mcq_single"
    mcq_multiple = "mcq_multiple"
    true_false = "true_false"
    fill_in_blank = "fill_in_blank"
    numerical = "numerical"
    match_the_column = "match_the_column"
    short_answer = "short_answer"
    long_answer = "long_answer"
    essay = "essay"
    creative_writing = "creative_writing"


class PaperStatus(str, Enum):
    draft = "draft"
    finalized = "finalized"
    published = "published"


def _new_id() -> str:
    return str(uuid4())


# ===== Question bank =====


class QuestionContent(BaseModel):
    """Question body plus its answer key.

    Only the fields relevant to the question's type are populated; unknown
    fields coming from the bank are kept as-is.
    """

    model_config = ConfigDict(extra="allow")

    body: str = ""
    correct_option_index: Optional[int] = None
    correct_option_indices: Optional[list[int]] = None
    correct_answer: Any = None
    accepted_answers: Optional[list[str]] = None
    tolerance: Optional[float] = None
    correct_pairs: Optional[dict[str, Any]] = None
    solution: str = ""
    explanation: str = ""


class QuestionMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    marks: float = 1
    difficulty: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class QuestionUsage(BaseModel):
    # May dip below zero while out-of-order deltas are in flight.
    paper_count: int = 0


class Question(BaseModel):
    question_id: str = Field(default_factory=_new_id)
    company_id: str
    type: str  # QuestionType value; unknown types are graded manually
    content: QuestionContent = Field(default_factory=QuestionContent)
    metadata: QuestionMetadata = Field(default_factory=QuestionMetadata)
    usage: QuestionUsage = Field(default_factory=QuestionUsage)
    is_archived: bool = False


# ===== Paper assembly =====


class QuestionRef(BaseModel):
    question_id: str = Field(min_length=1)
    question_number: int = Field(ge=1)
    marks: float = Field(gt=0)
    is_required: bool = True


class NewQuestionRef(BaseModel):
    """A reference about to be appended; its number is assigned on insert."""

    question_id: str = Field(min_length=1)
    marks: float = Field(gt=0)
    is_required: bool = True


class Section(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    instructions: str = ""
    time_limit: int = Field(default=0, ge=0)
    questions: list[QuestionRef] = Field(default_factory=list)


class PdfArtifact(BaseModel):
    kind: str  # question_paper|answer_key|solutions
    storage_key: str
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class Paper(BaseModel):
    paper_id: str = Field(default_factory=_new_id)
    tenant_id: str
    company_id: str
    title: str = Field(min_length=1, max_length=300)
    description: str = ""
    template_id: str
    status: PaperStatus = PaperStatus.draft
    sections: list[Section] = Field(default_factory=list)
    total_marks: float = 0
    total_time: int = 0
    pdfs: list[PdfArtifact] = Field(default_factory=list)
    version: int = 1

    created_by: str
    updated_by: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# ===== Attempts =====


class AttemptAnswer(BaseModel):
    question_id: str
    section_index: int = Field(default=0, ge=0)
    answer: Any = None
    is_correct: Optional[bool] = None
    marks_awarded: Optional[float] = None
    max_marks: float = 0


class Attempt(BaseModel):
    attempt_id: str = Field(default_factory=_new_id)
    paper_id: str
    student_id: str
    answers: list[AttemptAnswer] = Field(default_factory=list)


class GradeResult(BaseModel):
    is_correct: Optional[bool] = None
    marks_awarded: Optional[float] = None


class FeedbackResult(GradeResult):
    correct_answer: Any = None
    solution: str = ""
    explanation: str = ""


class AttemptSummary(BaseModel):
    marks_obtained: float = 0
    max_marks: float = 0
    percentage: float = 0
    auto_graded: int = 0
    pending_manual: int = 0


# ===== Request / response DTOs =====


class CreatePaperRequest(BaseModel):
    tenant_id: str
    title: str = Field(min_length=1, max_length=300)
    description: str = ""
    template_id: str = Field(min_length=1)
    sections: list[Section] = Field(default_factory=list)


class UpdatePaperRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    description: Optional[str] = None
    template_id: Optional[str] = Field(default=None, min_length=1)
    sections: Optional[list[Section]] = None
    version: Optional[int] = None


class AddQuestionsRequest(BaseModel):
    question_ids: list[str] = Field(min_length=1)


class SwapQuestionRequest(BaseModel):
    new_question_id: str = Field(min_length=1)
    marks: Optional[float] = Field(default=None, gt=0)


class ReorderRequest(BaseModel):
    ordered_question_numbers: list[int]


class PaperFilters(BaseModel):
    status: Optional[PaperStatus] = None
    search: Optional[str] = Field(default=None, max_length=200)
    template_id: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort_by: Literal["created_at", "title", "total_marks", "updated_at"] = "created_at"
    sort_dir: Literal["asc", "desc"] = "desc"


class PaperPage(BaseModel):
    papers: list[Paper]
    total: int
    page: int = 1
    limit: int = 20


class FinalizeResult(BaseModel):
    paper: Paper
    job_id: Optional[str] = None


class PaperStats(BaseModel):
    by_status: dict[str, int] = Field(default_factory=dict)
    total_pdfs: int = 0
    avg_questions_per_paper: float = 0


class PdfUrlResponse(BaseModel):
    kind: str
    url: str
    expires_in: int


class GradeAttemptResponse(BaseModel):
    attempt: Attempt
    summary: AttemptSummary
