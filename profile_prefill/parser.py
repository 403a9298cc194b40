"""High-level API for document parsing and question pre-filling."""

import mimetypes
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from profile_prefill.config import ExtractorConfig, PipelineConfig
from profile_prefill.generation import AnswerGenerationService, OpenAIAnswerService
from profile_prefill.handler import DocumentHandler
from profile_prefill.models import ParsedDocument, PrefillResult, Question, RawDocument
from profile_prefill.pipeline import PrefillPipeline
from profile_prefill.storage import LocalFileStore


def parse_document(
    file_path: Optional[str] = None,
    file_bytes: Optional[bytes] = None,
    file_name: Optional[str] = None,
    mime_type: Optional[str] = None,
    config: Optional[ExtractorConfig] = None,
) -> ParsedDocument:
    """Parse a single document into text and a structured profile fragment.

    High-level convenience function that accepts either a file path or raw bytes.

    Args:
        file_path: Path to document file (alternative to file_bytes)
        file_bytes: Raw document bytes (alternative to file_path)
        file_name: Original filename (required if using file_bytes)
        mime_type: MIME type hint (optional, will be detected if not provided)
        config: Extraction configuration (optional, uses defaults if not provided)

    Returns:
        ParsedDocument; extraction failures are reported on it, not raised

    Raises:
        ValueError: If neither file_path nor file_bytes provided, or if file_bytes
            provided without file_name

    Examples:
        >>> result = parse_document(file_path="Jane_Doe_CV.pdf")
        >>> result.structured_data.skills
        ['Python', 'Docker']
    """
    if file_path and file_bytes:
        raise ValueError("Provide either file_path or file_bytes, not both")

    if not file_path and not file_bytes:
        raise ValueError("Must provide either file_path or file_bytes")

    if file_path:
        path = Path(file_path)
        if not path.exists():
            raise ValueError(f"File not found: {file_path}")
        file_name = path.name
        if not mime_type:
            guessed_type, _ = mimetypes.guess_type(str(path))
            mime_type = guessed_type
        document = RawDocument(file_name=file_name, mime_type=mime_type or "", path=path)
    else:
        if not file_name:
            raise ValueError("file_name is required when using file_bytes")
        document = RawDocument(file_name=file_name, mime_type=mime_type or "", file_bytes=file_bytes)

    handler = DocumentHandler(config=config)
    return handler.parse(document)


def prefill_documents(
    file_paths: Sequence[Union[str, Path]],
    questions: Sequence[Union[Question, dict[str, Any]]],
    config: Optional[PipelineConfig] = None,
    generation_service: Optional[AnswerGenerationService] = None,
    delete_files: bool = False,
) -> PrefillResult:
    """Run the full pre-fill pipeline over files on disk.

    Args:
        file_paths: Uploaded documents of one applicant
        questions: Question objects or dicts with id/_id, text, type, options, category
        config: Pipeline configuration (optional, uses defaults if not provided)
        generation_service: Answer generator for ai-suggestion questions. Defaults to
            OpenAIAnswerService configured from the environment.
        delete_files: Delete the files once the run is over, as for temporary uploads

    Returns:
        PrefillResult describing every document, mapping and answer
    """
    config = config or PipelineConfig()
    if generation_service is None:
        generation_service = OpenAIAnswerService(config.generation)

    documents = []
    for file_path in file_paths:
        path = Path(file_path)
        guessed_type, _ = mimetypes.guess_type(str(path))
        documents.append(RawDocument(file_name=path.name, mime_type=guessed_type or "", path=path))

    pipeline = PrefillPipeline(
        config=config,
        generation_service=generation_service,
        file_store=LocalFileStore() if delete_files else None,
    )
    return pipeline.run(documents, questions)
