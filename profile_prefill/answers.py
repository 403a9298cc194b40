"""Answer generation for classified questions."""

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Optional, Sequence

from profile_prefill.classifier import match_evidence, match_option
from profile_prefill.config import GenerationConfig
from profile_prefill.exceptions import GenerationError
from profile_prefill.generation import AnswerGenerationService, build_prompt, parse_generated_answer
from profile_prefill.logger import get_logger
from profile_prefill.models import (
    Answer,
    AnswerSource,
    Bucket,
    Question,
    QuestionMapping,
    QuestionType,
    StructuredProfile,
    utc_now_iso,
)

logger = get_logger(__name__)


def format_evidence(topic: str, evidence: Sequence[Any]) -> Optional[str]:
    """Free-text rendering of profile evidence for a topic."""
    if not evidence:
        return None
    if topic in ("skills", "languages"):
        return ", ".join(evidence)

    first = evidence[0]
    if topic == "education":
        value = f"{first.degree} in {first.field}"
        if first.institution:
            value += f", {first.institution}"
        if first.year:
            value += f" ({first.year})"
        return value
    if topic == "experience":
        value = f"{first.title} at {first.company}"
        if first.duration:
            value += f" ({first.duration})"
        return value
    if topic == "certifications":
        return f"{first.name} ({first.issuer})" if first.issuer else first.name
    if isinstance(first, str):
        return first
    return None


def _contact_value(question: Question, profile: StructuredProfile) -> Optional[str]:
    text = question.text.lower()
    contact = profile.contact_info
    if "linkedin" in text and contact.linkedin:
        return contact.linkedin
    if "github" in text and contact.github:
        return contact.github
    if ("website" in text or "portfolio" in text) and contact.website:
        return contact.website
    urls = profile.data_points("contact")
    return urls[0] if urls else None


class AnswerGenerator:
    """Produces one Answer per auto-fill or ai-suggestion mapping.

    Collaborator calls run on a private thread pool so each one can be
    abandoned after ``timeout_seconds``. Use as a context manager, or call
    ``close`` when done.
    """

    def __init__(
        self,
        service: Optional[AnswerGenerationService] = None,
        config: Optional[GenerationConfig] = None,
    ):
        self.service = service
        self.config = config or GenerationConfig()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="answer-generation"
        )
        self._lock = threading.Lock()
        self.generation_calls = 0
        self.fallback_count = 0

    def __enter__(self) -> "AnswerGenerator":
        return self

    def __exit__(self, *args):
        self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    @property
    def model(self) -> Optional[str]:
        return getattr(self.service, "model", None) if self.service is not None else None

    @property
    def token_usage(self) -> dict[str, int]:
        return dict(getattr(self.service, "token_usage", None) or {})

    def generate(self, question: Question, profile: StructuredProfile, mapping: QuestionMapping) -> Optional[Answer]:
        """Answer for one question; None only for the no-match bucket.

        An auto-fill mapping whose evidence yields no value is answered by
        generation instead, with ``metadata["rerouted"]`` set.
        """
        if mapping.bucket == Bucket.NO_MATCH:
            return None
        if mapping.bucket == Bucket.AUTO_FILL:
            answer = self._auto_fill(question, profile, mapping)
            if answer is not None:
                return answer
            logger.debug(
                "Auto-fill produced no value, generating instead",
                extra_data={"question_id": question.id, "topic": mapping.topic},
            )
            answer = self._suggest(question, profile, mapping)
            answer.metadata["rerouted"] = True
            return answer
        return self._suggest(question, profile, mapping)

    def generate_all(
        self,
        questions: Sequence[Question],
        profile: StructuredProfile,
        mappings: Sequence[QuestionMapping],
    ) -> dict[str, Answer]:
        by_id = {q.id: q for q in questions}
        answers = {}
        for mapping in mappings:
            question = by_id.get(mapping.question_id)
            if question is None:
                continue
            answer = self.generate(question, profile, mapping)
            if answer is not None:
                answers[question.id] = answer
        return answers

    # --- auto-fill ------------------------------------------------------------

    def _auto_fill_value(self, question: Question, profile: StructuredProfile, topic: str) -> Optional[str]:
        evidence = profile.data_points(topic)
        if not evidence:
            return None
        if question.type == QuestionType.YES_NO.value:
            return match_option("Yes", question.options) if question.options else "Yes"
        if question.options:
            return match_evidence(topic, evidence, question.options)
        if topic == "contact":
            return _contact_value(question, profile)
        return format_evidence(topic, evidence)

    def _auto_fill(self, question: Question, profile: StructuredProfile, mapping: QuestionMapping) -> Optional[Answer]:
        value = self._auto_fill_value(question, profile, mapping.topic)
        if not value:
            return None
        return Answer(
            question_id=question.id,
            value=value,
            confidence=mapping.confidence if mapping.confidence is not None else 0.0,
            source=AnswerSource.DOCUMENT_PARSING,
            metadata={
                "topic": mapping.topic,
                "question_text": question.text,
                "evidence_count": len(profile.data_points(mapping.topic)),
                "generated_at": utc_now_iso(),
            },
        )

    # --- ai-suggestion ----------------------------------------------------------

    def _call_service(self, prompt: str) -> str:
        if self.service is None:
            raise GenerationError("No answer generation service configured")
        with self._lock:
            self.generation_calls += 1
        future = self._executor.submit(self.service.generate, prompt)
        try:
            return future.result(timeout=self.config.timeout_seconds)
        except FutureTimeoutError as exc:
            future.cancel()
            raise GenerationError(
                f"Generation timed out after {self.config.timeout_seconds}s"
            ) from exc

    def _suggest(self, question: Question, profile: StructuredProfile, mapping: QuestionMapping) -> Answer:
        prompt = build_prompt(question.text, mapping.topic, profile, question.options)
        try:
            raw = self._call_service(prompt)
        except Exception as exc:
            return self._fallback(question, mapping, str(exc) or type(exc).__name__)

        value = parse_generated_answer(raw, question.options)
        if value is None:
            reason = "generated answer matched no option" if question.options else "generated answer was empty"
            return self._fallback(question, mapping, reason)

        return Answer(
            question_id=question.id,
            value=value,
            confidence=self.config.success_confidence,
            source=AnswerSource.AI_GENERATION,
            metadata={
                "topic": mapping.topic,
                "question_text": question.text,
                "model": self.model,
                "fallback": False,
                "generated_at": utc_now_iso(),
            },
        )

    def fallback_value(self, question: Question) -> str:
        return question.options[0] if question.options else self.config.default_answer

    def _fallback(self, question: Question, mapping: QuestionMapping, reason: str) -> Answer:
        with self._lock:
            self.fallback_count += 1
        logger.warning(
            "Using fallback answer",
            extra_data={"question_id": question.id, "topic": mapping.topic, "reason": reason},
        )
        return Answer(
            question_id=question.id,
            value=self.fallback_value(question),
            confidence=self.config.fallback_confidence,
            source=AnswerSource.FALLBACK,
            metadata={
                "topic": mapping.topic,
                "question_text": question.text,
                "fallback": True,
                "error": reason,
                "generated_at": utc_now_iso(),
            },
        )
