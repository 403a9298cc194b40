"""Question classification into auto-fill, ai-suggestion and no-match buckets."""

import re
from typing import Any, Optional, Sequence

from profile_prefill.exceptions import ClassificationError
from profile_prefill.logger import get_logger
from profile_prefill.models import (
    Bucket,
    Question,
    QuestionMapping,
    QuestionType,
    StructuredProfile,
)

logger = get_logger(__name__)

# Checked in order; the first group with a keyword in the question text wins
TOPIC_KEYWORDS = (
    ("skills", ("skill", "programming", "technology")),
    ("education", ("education", "degree", "university")),
    ("experience", ("experience", "work", "career")),
    ("career_goals", ("goal", "objective", "aspiration")),
    ("certifications", ("certification", "certificate")),
    ("languages", ("language",)),
)
DEFAULT_TOPIC = "general"
ATTACHMENT_TOPIC = "attachment"
CONTACT_TOPIC = "contact"

KNOWN_TOPICS = frozenset(topic for topic, _ in TOPIC_KEYWORDS)

# Topics the generation collaborator can answer without direct evidence
GENERATABLE_TOPICS = frozenset(KNOWN_TOPICS | {DEFAULT_TOPIC})

QUESTION_TYPES = frozenset(t.value for t in QuestionType)

_POSSESSIVE = re.compile(r"['’]s\b")


def _normalize(value: str) -> str:
    value = _POSSESSIVE.sub("", value.casefold())
    return " ".join(value.strip().strip("\"'").split())


def match_option(value: Optional[str], options: Sequence[str]) -> Optional[str]:
    """Return the option matching ``value``, exactly as the option is written.

    Exact case-insensitive equality is preferred; otherwise the first option
    that contains ``value`` as a substring, or is contained in it, wins.
    """
    if not value or not options:
        return None
    norm = _normalize(value)
    if not norm:
        return None
    for option in options:
        if _normalize(option) == norm:
            return option
    for option in options:
        candidate = _normalize(option)
        if candidate and (norm in candidate or candidate in norm):
            return option
    return None


def evidence_labels(topic: str, item: Any) -> list[str]:
    """Strings of one evidence item that are compared against options."""
    if isinstance(item, str):
        return [item]
    if topic == "education":
        return [item.degree, f"{item.degree} in {item.field}"]
    if topic == "experience":
        return [item.title]
    if topic == "certifications":
        return [item.name]
    return []


def match_evidence(topic: str, evidence: Sequence[Any], options: Sequence[str]) -> Optional[str]:
    """First option matched by any evidence item, walking evidence in order."""
    for item in evidence:
        for label in evidence_labels(topic, item):
            option = match_option(label, options)
            if option is not None:
                return option
    return None


class QuestionClassifier:
    """Maps each question to a bucket using the merged profile as evidence."""

    def __init__(self, confidence_cap: int = 3):
        if confidence_cap < 1:
            raise ValueError("confidence_cap must be at least 1")
        self.confidence_cap = confidence_cap

    @staticmethod
    def infer_topic(question: Question) -> str:
        if question.type == QuestionType.UPLOAD.value:
            return ATTACHMENT_TOPIC
        if question.type == QuestionType.LINK.value:
            return CONTACT_TOPIC

        text = question.text.lower()
        for topic, keywords in TOPIC_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return topic

        category = (question.category or "").strip().lower()
        if category in KNOWN_TOPICS:
            return category
        return DEFAULT_TOPIC

    @staticmethod
    def validate_question(question: Question) -> None:
        """Raise ClassificationError if the question cannot be classified."""
        if not isinstance(question.id, str) or not question.id:
            raise ClassificationError("<missing>", "question has no id")
        if not isinstance(question.text, str) or not question.text.strip():
            raise ClassificationError(question.id, "question text is empty or not a string")
        if not isinstance(question.type, str) or question.type not in QUESTION_TYPES:
            raise ClassificationError(question.id, f"unknown question type '{question.type}'")
        if not isinstance(question.options, list) or not all(isinstance(o, str) for o in question.options):
            raise ClassificationError(question.id, "options must be a list of strings")
        if question.category is not None and not isinstance(question.category, str):
            raise ClassificationError(question.id, "category must be a string")
        if question.type == QuestionType.MULTIPLE_CHOICE.value and not question.options:
            raise ClassificationError(question.id, "multiple-choice question has no options")

    def confidence(self, evidence_count: int) -> float:
        return min(evidence_count / self.confidence_cap, 1.0)

    @staticmethod
    def fits_options(topic: str, evidence: Sequence[Any], question: Question) -> bool:
        """Whether an auto-filled value would be one of the question's options."""
        if not question.options:
            return True
        if question.type == QuestionType.YES_NO.value:
            return match_option("Yes", question.options) is not None
        return match_evidence(topic, evidence, question.options) is not None

    def classify_question(self, profile: StructuredProfile, question: Question) -> QuestionMapping:
        """Bucket a single question. Depends only on ``profile`` and ``question``."""
        self.validate_question(question)
        topic = self.infer_topic(question)
        evidence = profile.data_points(topic)

        if evidence and self.fits_options(topic, evidence, question):
            return QuestionMapping(
                question_id=question.id,
                bucket=Bucket.AUTO_FILL,
                topic=topic,
                confidence=self.confidence(len(evidence)),
                question_text=question.text,
            )

        bucket = Bucket.AI_SUGGESTION if topic in GENERATABLE_TOPICS else Bucket.NO_MATCH
        return QuestionMapping(
            question_id=question.id,
            bucket=bucket,
            topic=topic,
            question_text=question.text,
        )

    def classify(self, profile: StructuredProfile, questions: Sequence[Question]) -> list[QuestionMapping]:
        """One mapping per question, in input order."""
        mappings = [self.classify_question(profile, question) for question in questions]
        logger.info(
            "Questions classified",
            extra_data={
                "total": len(mappings),
                "auto_fill": sum(m.bucket == Bucket.AUTO_FILL for m in mappings),
                "ai_suggestion": sum(m.bucket == Bucket.AI_SUGGESTION for m in mappings),
                "no_match": sum(m.bucket == Bucket.NO_MATCH for m in mappings),
            },
        )
        return mappings
