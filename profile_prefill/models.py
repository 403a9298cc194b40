"""Data models for the pre-fill pipeline."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union


class QuestionType(str, Enum):
    TEXT = "text"
    YES_NO = "yes/no"
    MULTIPLE_CHOICE = "multiple-choice"
    UPLOAD = "upload"
    LINK = "link"


class Bucket(str, Enum):
    AUTO_FILL = "auto-fill"
    AI_SUGGESTION = "ai-suggestion"
    NO_MATCH = "no-match"


class AnswerSource(str, Enum):
    DOCUMENT_PARSING = "document-parsing"
    AI_GENERATION = "ai-generation"
    FALLBACK = "fallback"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RawDocument:
    """An uploaded file, held either in memory or at a temporary path.

    The caller owns it for one pipeline run; ``handle`` is what the
    FileStore deletes afterwards.
    """

    file_name: str
    mime_type: str = ""
    file_bytes: Optional[bytes] = None
    path: Optional[Union[str, Path]] = None
    size: Optional[int] = None

    @property
    def handle(self) -> Optional[str]:
        return str(self.path) if self.path is not None else None

    def read_bytes(self) -> bytes:
        if self.file_bytes is None:
            if self.path is None:
                raise ValueError(f"Document {self.file_name} has neither bytes nor path")
            self.file_bytes = Path(self.path).read_bytes()
        if self.size is None:
            self.size = len(self.file_bytes)
        return self.file_bytes


@dataclass
class PersonalInfo:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


@dataclass
class ContactInfo:
    linkedin: Optional[str] = None
    github: Optional[str] = None
    website: Optional[str] = None


@dataclass
class EducationEntry:
    degree: str
    field: str
    institution: Optional[str] = None
    year: Optional[str] = None


@dataclass
class ExperienceEntry:
    title: str
    company: str
    duration: Optional[str] = None
    description: Optional[str] = None


@dataclass
class CertificationEntry:
    name: str
    issuer: Optional[str] = None
    year: Optional[str] = None


@dataclass
class ProjectEntry:
    name: str
    description: str = ""


@dataclass
class AchievementEntry:
    title: str
    description: str = ""


# Profile list fields, in the order they are merged and reported
LIST_FIELDS = (
    "education",
    "experience",
    "skills",
    "certifications",
    "languages",
    "projects",
    "achievements",
)


@dataclass
class StructuredProfile:
    """Professional attributes extracted from one document or merged from many."""

    personal_info: PersonalInfo = field(default_factory=PersonalInfo)
    education: list[EducationEntry] = field(default_factory=list)
    experience: list[ExperienceEntry] = field(default_factory=list)
    skills: list[str] = field(default_factory=list)
    certifications: list[CertificationEntry] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)
    projects: list[ProjectEntry] = field(default_factory=list)
    achievements: list[AchievementEntry] = field(default_factory=list)
    contact_info: ContactInfo = field(default_factory=ContactInfo)
    objective: Optional[str] = None
    summary: Optional[str] = None

    def data_points(self, topic: str) -> list:
        """Evidence available for a question topic, in extraction order."""
        if topic in LIST_FIELDS:
            return list(getattr(self, topic))
        if topic == "contact":
            info = self.contact_info
            return [url for url in (info.linkedin, info.github, info.website) if url]
        return []

    def is_empty(self) -> bool:
        if any(getattr(self, name) for name in LIST_FIELDS):
            return False
        if any(asdict(self.personal_info).values()) or any(asdict(self.contact_info).values()):
            return False
        return not (self.objective or self.summary)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Question:
    """An admin-defined question. Read-only to the pipeline."""

    id: str
    text: str
    type: str = QuestionType.TEXT.value
    options: list[str] = field(default_factory=list)
    category: str = "general"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Question":
        """Build a Question without judging it; malformed values are left for validation."""
        question_id = data.get("id", data.get("_id"))
        options = data.get("options") or []
        return cls(
            id=str(question_id) if question_id is not None else "",
            text=data.get("text") or "",
            type=data.get("type") or QuestionType.TEXT.value,
            options=list(options) if isinstance(options, (list, tuple)) else options,
            category=data.get("category") or "general",
        )


@dataclass(frozen=True)
class QuestionMapping:
    question_id: str
    bucket: Bucket
    topic: str
    confidence: Optional[float] = None
    question_text: str = ""


@dataclass
class Answer:
    question_id: str
    value: str
    confidence: float
    source: AnswerSource
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RejectedQuestion:
    question_id: str
    reason: str


@dataclass(frozen=True)
class ParsedDocument:
    """Outcome of extracting one RawDocument. Created once, never mutated."""

    document_type: str
    success: bool
    file_name: str
    mime_type: str
    size: int = 0
    raw_text_sample: str = ""
    text_length: int = 0
    ocr_used: bool = False
    structured_data: Optional[StructuredProfile] = None
    error: Optional[str] = None
    parsed_at: str = field(default_factory=utc_now_iso)


@dataclass
class ProcessingSummary:
    status: str = "completed"
    documents_processed: int = 0
    documents_parsed: int = 0
    documents_failed: int = 0
    total_questions: int = 0
    auto_fill_questions: int = 0
    ai_suggestion_questions: int = 0
    no_match_questions: int = 0
    rejected_questions: int = 0
    auto_fill_success_rate: float = 0.0
    ai_suggestion_success_rate: float = 0.0
    fallback_count: int = 0
    generation_calls: int = 0
    model: Optional[str] = None
    token_usage: dict[str, int] = field(default_factory=dict)
    processing_time_ms: int = 0
    processed_at: str = field(default_factory=utc_now_iso)


@dataclass
class PrefillResult:
    """Single structured outcome of a pipeline run, including partial failures."""

    success: bool
    parsed_documents: list[ParsedDocument] = field(default_factory=list)
    profile: Optional[StructuredProfile] = None
    mappings: list[QuestionMapping] = field(default_factory=list)
    answers: dict[str, Answer] = field(default_factory=dict)
    rejected_questions: list[RejectedQuestion] = field(default_factory=list)
    summary: ProcessingSummary = field(default_factory=ProcessingSummary)
    error: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    def mappings_in(self, bucket: Bucket) -> list[QuestionMapping]:
        return [m for m in self.mappings if m.bucket == bucket]
