"""Per-document orchestration: detection, text extraction and entity extraction."""

from typing import Optional

from profile_prefill.config import ExtractorConfig
from profile_prefill.detector import DocumentDetector
from profile_prefill.entities import EntityExtractor
from profile_prefill.extractor import TextExtractor
from profile_prefill.logger import Timer, get_logger
from profile_prefill.models import ParsedDocument, RawDocument

logger = get_logger(__name__)


class DocumentHandler:
    def __init__(
        self,
        detector: Optional[DocumentDetector] = None,
        text_extractor: Optional[TextExtractor] = None,
        entity_extractor: Optional[EntityExtractor] = None,
        config: Optional[ExtractorConfig] = None,
    ) -> None:
        """Initialize document handler.

        Args:
            detector: Media type and document kind detector. If None, creates default.
            text_extractor: Text extractor. If None, creates default with config.
            entity_extractor: Structured data extractor. If None, creates default.
            config: Extraction configuration. Only used if text_extractor is None.
        """
        self.config = config or ExtractorConfig()
        self.detector = detector or DocumentDetector()
        self.text_extractor = text_extractor or TextExtractor(config=self.config)
        self.entity_extractor = entity_extractor or EntityExtractor()

    def parse(self, document: RawDocument) -> ParsedDocument:
        """Turn one uploaded document into a ParsedDocument.

        Failures are recorded on the result instead of raised, so one bad
        file never affects its siblings.

        Args:
            document: Uploaded file, in memory or at a temporary path

        Returns:
            ParsedDocument with success=False and an error message on failure
        """
        document_type = DocumentDetector.document_kind(document.file_name)
        mime_type = document.mime_type
        size = document.size or 0

        try:
            with Timer("document") as timer:
                file_bytes = document.read_bytes()
                size = len(file_bytes)

                descriptor = self.detector.detect(
                    file_bytes=file_bytes, mime_type=document.mime_type, file_name=document.file_name
                )
                mime_type = descriptor.mime_type

                text, ocr_used = self.text_extractor.extract(file_bytes, descriptor.mime_type, document.file_name)
                profile = self.entity_extractor.extract(text, descriptor.document_type)
        except Exception as exc:
            logger.error(
                "Document parsing failed",
                extra_data={
                    "file_name": document.file_name,
                    "mime_type": mime_type or "<none>",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return ParsedDocument(
                document_type=document_type,
                success=False,
                file_name=document.file_name,
                mime_type=mime_type,
                size=size,
                error=str(exc),
            )

        logger.info(
            "Document parsed",
            extra_data={
                "file_name": document.file_name,
                "mime_type": mime_type,
                "document_type": descriptor.document_type,
                "character_count": len(text),
                "ocr_used": ocr_used,
                "parse_time_ms": timer.get_elapsed_ms(),
            },
        )
        return ParsedDocument(
            document_type=descriptor.document_type,
            success=True,
            file_name=document.file_name,
            mime_type=mime_type,
            size=size,
            raw_text_sample=text[: self.config.raw_text_sample_chars],
            text_length=len(text),
            ocr_used=ocr_used,
            structured_data=profile,
        )
