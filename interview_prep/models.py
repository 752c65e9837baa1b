"""Pydantic models for interview prep reports and pipeline state.

Wire format is camelCase (``researchTendency``, ``isTypo``...) to match the
browser client; Python code uses the snake_case field names.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Research results ---


class Source(WireModel):
    """A grounding citation attached by the provider's web search."""

    title: str = Field(description="Page title", examples=["컴퓨터공학과 교육과정"])
    uri: str = Field(description="Cited URL", examples=["https://cse.example.ac.kr/curriculum"])


class ResearchResult(WireModel):
    """Free-text research output with its de-duplicated sources."""

    text: str = Field(default="", description="Markdown prose with numbered section headers")
    sources: list[Source] = Field(default_factory=list)


class Professor(WireModel):
    name: str
    lab: str | None = None
    contact: str | None = None
    major_papers: list[str] = Field(default_factory=list)
    research_tendency: str = Field(default="", description="Three-line Korean summary of research direction")
    details: str | None = None


class ProfessorAnalysisResult(WireModel):
    professors: list[Professor] = Field(default_factory=list)
    major_knowledge_analysis: str = ""
    sources: list[Source] = Field(default_factory=list)


# --- Strategy ---


class CoreConcept(WireModel):
    keyword: str = Field(description="Short phrase, never a professor name", examples=["자료구조"])
    description: str = ""
    example: str = ""


class InterviewQuestion(WireModel):
    question: str
    intent: str = Field(default="", description="Why an interviewer asks this")
    tip: str = Field(default="", description="How to answer")
    follow_up: str | None = Field(default=None, description="Follow-up question (high tier only)")


class QuestionSet(WireModel):
    high: list[InterviewQuestion] = Field(default_factory=list)
    medium: list[InterviewQuestion] = Field(default_factory=list)
    low: list[InterviewQuestion] = Field(default_factory=list)


class StrategicPlan(WireModel):
    core_strategy: str = ""
    core_concepts: list[CoreConcept] = Field(default_factory=list)
    questions: QuestionSet = Field(default_factory=QuestionSet)


# --- Validation / audit ---


class ValidationResult(WireModel):
    is_valid: bool = True
    is_typo: bool = False
    corrected_university: str | None = None
    corrected_department: str | None = None
    message: str | None = None


class AuditStatus(str, Enum):
    PASS = "PASS"
    WARNING = "WARNING"
    FAIL = "FAIL"


class AuditResult(WireModel):
    score: int = Field(default=0, ge=0, le=100)
    status: AuditStatus = AuditStatus.WARNING
    issues: list[str] = Field(default_factory=list)
    feedback: str = ""


# --- Report ---


class FullReport(WireModel):
    """Assembled report. Built only after every upstream stage succeeded."""

    model_config = ConfigDict(frozen=True)

    university: str
    department: str
    curriculum_analysis: ResearchResult
    professor_analysis: ProfessorAnalysisResult
    interview_trends: ResearchResult
    strategy: StrategicPlan
    audit: AuditResult | None = None


# --- Controller state ---


class StepStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    REVIEWING = "reviewing"
    COMPLETED = "completed"
    ERROR = "error"
    PAUSED = "paused"


class AnalysisStep(WireModel):
    id: str
    label: str
    status: StepStatus = StepStatus.IDLE


class ResearchCache(WireModel):
    """Snapshot of the three research results, consulted when resuming."""

    model_config = ConfigDict(frozen=True)

    curriculum: ResearchResult
    professors: ProfessorAnalysisResult
    trends: ResearchResult


# --- Stage requests ---

StageAction = Literal["validate", "curriculum", "professors", "trends", "synthesis", "audit"]
SubTask = Literal["strategy", "questions"]


class StageConfig(WireModel):
    """Per-request overrides. ``timeout`` and ``delay`` are milliseconds on the wire."""

    model: str | None = None
    timeout: float | None = Field(default=None, gt=0)
    delay: float | None = Field(default=None, ge=0)

    @property
    def timeout_seconds(self) -> float | None:
        return self.timeout / 1000 if self.timeout is not None else None

    @property
    def delay_seconds(self) -> float | None:
        return self.delay / 1000 if self.delay is not None else None


class StagePayload(WireModel):
    uni: str = ""
    dept: str = ""
    config: StageConfig | None = None
    curriculum: str = ""
    professors: list[Professor] = Field(default_factory=list)
    trends: str = ""
    sub_task: SubTask | None = None


class StageRequest(BaseModel):
    action: str = Field(description="Stage to run", examples=["curriculum"])
    payload: dict[str, Any] = Field(default_factory=dict)
