"""Batch orchestration: documents and questions in, one PrefillResult out."""

import contextvars
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Sequence, Union

from profile_prefill.answers import AnswerGenerator
from profile_prefill.classifier import QuestionClassifier
from profile_prefill.config import PipelineConfig
from profile_prefill.exceptions import ClassificationError, PipelineInputError
from profile_prefill.generation import AnswerGenerationService
from profile_prefill.handler import DocumentHandler
from profile_prefill.logger import Timer, get_logger, set_batch_id
from profile_prefill.merger import ProfileMerger
from profile_prefill.models import (
    Answer,
    AnswerSource,
    Bucket,
    ParsedDocument,
    PrefillResult,
    ProcessingSummary,
    Question,
    QuestionMapping,
    RawDocument,
    RejectedQuestion,
)
from profile_prefill.storage import FileStore, ProfileSink, QuestionSource

logger = get_logger(__name__)

INVALID_QUESTION_ID = "<invalid>"

# Auto-fill answers rerouted to generation do not count as auto-filled
AUTO_FILL_SOURCES = frozenset({AnswerSource.DOCUMENT_PARSING})


def _success_rate(
    mappings: Sequence[QuestionMapping],
    answers: dict[str, Answer],
    sources: Optional[frozenset] = None,
) -> float:
    """Percent of ``mappings`` with a non-empty answer, optionally from ``sources`` only."""
    if not mappings:
        return 0.0
    answered = 0
    for mapping in mappings:
        answer = answers.get(mapping.question_id)
        if answer is None or not answer.value:
            continue
        if sources is not None and answer.source not in sources:
            continue
        answered += 1
    return answered / len(mappings) * 100
class PrefillPipeline:
    """Runs extraction, merging, classification and answering for one batch.

    Every run gets its own batch id, worker pools and answer generator;
    nothing is carried over between runs. Uploaded files are released
    through the FileStore whatever the outcome.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        generation_service: Optional[AnswerGenerationService] = None,
        file_store: Optional[FileStore] = None,
        question_source: Optional[QuestionSource] = None,
        profile_sink: Optional[ProfileSink] = None,
        handler: Optional[DocumentHandler] = None,
    ):
        self.config = config or PipelineConfig()
        self.generation_service = generation_service
        self.file_store = file_store
        self.question_source = question_source
        self.profile_sink = profile_sink
        self.handler = handler or DocumentHandler(config=self.config.extractor)
        self.merger = ProfileMerger()
        self.classifier = QuestionClassifier(confidence_cap=self.config.confidence_cap)

    def run(
        self,
        documents: Sequence[RawDocument],
        questions: Optional[Sequence[Union[Question, dict[str, Any]]]] = None,
        batch_id: Optional[str] = None,
    ) -> PrefillResult:
        """Process a batch. Never raises for document or generation failures.

        Args:
            documents: Uploaded files of one applicant
            questions: Questions to pre-fill. Defaults to the QuestionSource's active set.
            batch_id: Correlation id for log lines. Generated if omitted.
        """
        # A copied context keeps the batch id from leaking into the caller
        return contextvars.copy_context().run(self._run, list(documents or []), questions, batch_id)

    def _run(
        self,
        documents: list[RawDocument],
        questions: Optional[Sequence[Union[Question, dict[str, Any]]]],
        batch_id: Optional[str],
    ) -> PrefillResult:
        set_batch_id(batch_id)
        warnings: list[str] = []
        try:
            with Timer("prefill") as timer:
                try:
                    result = self._process(documents, questions, warnings)
                except Exception as exc:
                    logger.error(
                        "Pre-fill run crashed",
                        extra_data={"error_type": type(exc).__name__, "error": str(exc)},
                    )
                    result = self._failed(f"Pre-fill run failed: {exc}", [], warnings)
        finally:
            self._release(documents, warnings)

        result.summary.processing_time_ms = timer.get_elapsed_ms()
        logger.info(
            "Pre-fill run finished",
            extra_data={
                "status": result.summary.status,
                "documents_parsed": result.summary.documents_parsed,
                "documents_failed": result.summary.documents_failed,
                "auto_fill": result.summary.auto_fill_questions,
                "ai_suggestion": result.summary.ai_suggestion_questions,
                "no_match": result.summary.no_match_questions,
                "fallbacks": result.summary.fallback_count,
                "processing_time_ms": result.summary.processing_time_ms,
            },
        )
        return result

    def _load_questions(
        self, raw_questions: Optional[Sequence[Union[Question, dict[str, Any]]]]
    ) -> tuple[list[Question], list[RejectedQuestion]]:
        """Questions as Question objects; entries that are not mappings are rejected."""
        if raw_questions is None:
            if self.question_source is None:
                return [], []
            try:
                raw_questions = self.question_source.list_active()
            except Exception as exc:
                raise PipelineInputError(f"Could not load questions: {exc}") from exc

        questions, rejected = [], []
        for raw in raw_questions:
            if isinstance(raw, Question):
                questions.append(raw)
            elif isinstance(raw, dict):
                questions.append(Question.from_dict(raw))
            else:
                logger.warning(
                    "Question rejected",
                    extra_data={"question_id": INVALID_QUESTION_ID, "reason": "not a mapping"},
                )
                rejected.append(
                    RejectedQuestion(
                        question_id=INVALID_QUESTION_ID,
                        reason=f"question must be a mapping, got {type(raw).__name__}",
                    )
                )
        return questions, rejected

    def _failed(self, error: str, parsed: list[ParsedDocument], warnings: list[str]) -> PrefillResult:
        return PrefillResult(
            success=False,
            parsed_documents=parsed,
            error=error,
            warnings=warnings,
            summary=self._summary(parsed, [], [], {}, None, status="failed"),
        )

    def _process(
        self,
        documents: list[RawDocument],
        raw_questions: Optional[Sequence[Union[Question, dict[str, Any]]]],
        warnings: list[str],
    ) -> PrefillResult:
        parsed: list[ParsedDocument] = []
        try:
            if not documents:
                raise PipelineInputError("No documents provided")
            questions, rejected = self._load_questions(raw_questions)
            if not questions and not rejected:
                raise PipelineInputError("No questions to pre-fill")

            logger.info(
                "Pre-fill run started",
                extra_data={"documents": len(documents), "questions": len(questions) + len(rejected)},
            )

            parsed = self.parse_documents(documents)
            if not any(doc.success for doc in parsed):
                raise PipelineInputError("None of the uploaded documents could be parsed")
        except PipelineInputError as exc:
            logger.warning("Pre-fill run aborted", extra_data={"reason": str(exc)})
            return self._failed(str(exc), parsed, warnings)

        valid, invalid = self._validate(questions)
        rejected.extend(invalid)
        profile = self.merger.merge_documents(parsed)
        mappings = self.classifier.classify(profile, valid)

        with AnswerGenerator(self.generation_service, self.config.generation) as generator:
            answers = generator.generate_all(valid, profile, mappings)

        if self.profile_sink is not None:
            try:
                self.profile_sink.record(profile, mappings, answers)
            except Exception as exc:
                logger.error(
                    "Recording results failed",
                    extra_data={"error_type": type(exc).__name__, "error": str(exc)},
                )
                warnings.append(f"Results could not be recorded: {exc}")

        return PrefillResult(
            success=True,
            parsed_documents=parsed,
            profile=profile,
            mappings=mappings,
            answers=answers,
            rejected_questions=rejected,
            warnings=warnings,
            summary=self._summary(parsed, mappings, rejected, answers, generator),
        )

    def parse_documents(self, documents: Sequence[RawDocument]) -> list[ParsedDocument]:
        """Parse documents in parallel, returning results in input order."""
        workers = max(1, min(self.config.max_workers, len(documents)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="document") as pool:
            futures = [
                pool.submit(contextvars.copy_context().run, self.handler.parse, document)
                for document in documents
            ]
            return [future.result() for future in futures]

    def _validate(self, questions: Sequence[Question]) -> tuple[list[Question], list[RejectedQuestion]]:
        valid, rejected = [], []
        for question in questions:
            try:
                self.classifier.validate_question(question)
            except ClassificationError as exc:
                logger.warning(
                    "Question rejected",
                    extra_data={"question_id": exc.question_id, "reason": exc.reason},
                )
                rejected.append(RejectedQuestion(question_id=exc.question_id, reason=exc.reason))
                continue
            valid.append(question)
        return valid, rejected

    def _release(self, documents: Sequence[RawDocument], warnings: list[str]) -> None:
        if self.file_store is None:
            return
        for document in documents:
            if document.handle is None:
                continue
            try:
                self.file_store.delete(document.handle)
            except (OSError, ValueError) as exc:
                logger.warning(
                    "Temporary file cleanup failed",
                    extra_data={"file_name": document.file_name, "error": str(exc)},
                )
                warnings.append(f"Could not delete {document.file_name}: {exc}")

    @staticmethod
    def _summary(
        parsed: Sequence[ParsedDocument],
        mappings: Sequence[QuestionMapping],
        rejected: Sequence[RejectedQuestion],
        answers: dict[str, Answer],
        generator: Optional[AnswerGenerator],
        status: Optional[str] = None,
    ) -> ProcessingSummary:
        auto_fill = [m for m in mappings if m.bucket == Bucket.AUTO_FILL]
        ai_suggestion = [m for m in mappings if m.bucket == Bucket.AI_SUGGESTION]
        failed = sum(1 for doc in parsed if not doc.success)
        if status is None:
            status = "partial" if failed or rejected else "completed"

        return ProcessingSummary(
            status=status,
            documents_processed=len(parsed),
            documents_parsed=len(parsed) - failed,
            documents_failed=failed,
            total_questions=len(mappings) + len(rejected),
            auto_fill_questions=len(auto_fill),
            ai_suggestion_questions=len(ai_suggestion),
            no_match_questions=sum(1 for m in mappings if m.bucket == Bucket.NO_MATCH),
            rejected_questions=len(rejected),
            auto_fill_success_rate=_success_rate(auto_fill, answers, AUTO_FILL_SOURCES),
            ai_suggestion_success_rate=_success_rate(ai_suggestion, answers),
            fallback_count=generator.fallback_count if generator is not None else 0,
            generation_calls=generator.generation_calls if generator is not None else 0,
            model=generator.model if generator is not None else None,
            token_usage=generator.token_usage if generator is not None else {},
        )
