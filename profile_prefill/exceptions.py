"""Custom exceptions for the pre-fill pipeline."""


class PrefillError(Exception):
    """Base exception for pre-fill pipeline errors."""

    pass


class UnsupportedFormatError(PrefillError):
    """Raised when no backend can read the declared media type."""

    pass


class ExtractionError(PrefillError):
    """Raised when text extraction fails or yields no text."""

    pass


class DecodingError(ExtractionError):
    """Raised when a document cannot be decoded as plain text."""

    pass


class ClassificationError(PrefillError):
    """Raised when a question is malformed and cannot be classified."""

    def __init__(self, question_id: str, reason: str):
        super().__init__(f"Question {question_id}: {reason}")
        self.question_id = question_id
        self.reason = reason


class GenerationError(PrefillError):
    """Raised when the answer-generation collaborator fails."""

    pass


class PipelineInputError(PrefillError):
    """Raised when a pipeline run has nothing to work on."""

    pass
