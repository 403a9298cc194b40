"""Document intelligence and question pre-fill pipeline."""

from profile_prefill.answers import AnswerGenerator
from profile_prefill.classifier import QuestionClassifier, match_option
from profile_prefill.config import ExtractorConfig, GenerationConfig, OCRConfig, PipelineConfig
from profile_prefill.detector import DocumentDescriptor, DocumentDetector
from profile_prefill.entities import EntityExtractor
from profile_prefill.exceptions import (
    ClassificationError,
    DecodingError,
    ExtractionError,
    GenerationError,
    PipelineInputError,
    PrefillError,
    UnsupportedFormatError,
)
from profile_prefill.extractor import TextExtractor, normalize_text
from profile_prefill.generation import AnswerGenerationService, OpenAIAnswerService
from profile_prefill.handler import DocumentHandler
from profile_prefill.logger import get_batch_id, set_batch_id, setup_logging
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
    QuestionType,
    RawDocument,
    RejectedQuestion,
    StructuredProfile,
)
from profile_prefill.parser import parse_document, prefill_documents
from profile_prefill.pipeline import PrefillPipeline
from profile_prefill.storage import (
    FileStore,
    InMemoryProfileSink,
    LocalFileStore,
    ProfileSink,
    QuestionSource,
    StaticQuestionSource,
)

__version__ = "0.1.0"

__all__ = [
    # High-level API
    "parse_document",
    "prefill_documents",
    "PrefillPipeline",
    # Core classes
    "DocumentHandler",
    "DocumentDetector",
    "TextExtractor",
    "EntityExtractor",
    "ProfileMerger",
    "QuestionClassifier",
    "AnswerGenerator",
    "OpenAIAnswerService",
    "normalize_text",
    "match_option",
    # Collaborator interfaces
    "AnswerGenerationService",
    "FileStore",
    "QuestionSource",
    "ProfileSink",
    "LocalFileStore",
    "StaticQuestionSource",
    "InMemoryProfileSink",
    # Data models
    "RawDocument",
    "ParsedDocument",
    "DocumentDescriptor",
    "StructuredProfile",
    "Question",
    "QuestionType",
    "QuestionMapping",
    "Bucket",
    "Answer",
    "AnswerSource",
    "RejectedQuestion",
    "ProcessingSummary",
    "PrefillResult",
    # Configuration
    "OCRConfig",
    "ExtractorConfig",
    "GenerationConfig",
    "PipelineConfig",
    # Logging
    "setup_logging",
    "set_batch_id",
    "get_batch_id",
    # Exceptions
    "PrefillError",
    "UnsupportedFormatError",
    "ExtractionError",
    "DecodingError",
    "ClassificationError",
    "GenerationError",
    "PipelineInputError",
]
