"""Media type resolution and document kind detection."""

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from profile_prefill.logger import get_logger

logger = get_logger(__name__)


PDF_SIGNATURE = b"%PDF"
ZIP_SIGNATURE = b"PK\x03\x04"
PNG_SIGNATURE = b"\x89PNG"
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0"  # Legacy Office container
JPEG_SIGNATURE = b"\xff\xd8\xff"
TIFF_SIGNATURES = (b"II*\x00", b"MM\x00*")

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"

# Declarations that carry no information about the content
GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

# Checked in order; the first keyword found in the file name decides the kind
DOCUMENT_KIND_KEYWORDS = (
    ("cv", ("cv", "resume", "résumé")),
    ("cover-letter", ("cover", "letter")),
    ("certificate", ("certificate", "cert")),
    ("transcript", ("transcript", "marksheet")),
    ("experience-letter", ("experience", "exp")),
)


@dataclass
class DocumentDescriptor:
    mime_type: str
    file_name: str
    document_type: str
    declared_mime_type: str = ""


class DocumentDetector:
    """Resolves the media type to dispatch on and the kind of document."""

    def detect(self, file_bytes: bytes, mime_type: str, file_name: str) -> DocumentDescriptor:
        declared = (mime_type or "").split(";")[0].strip().lower()
        resolved = declared
        if declared in GENERIC_MIME_TYPES:
            resolved = self._sniff_mime(file_bytes) or self._guess_from_name(file_name) or declared
            if resolved != declared:
                logger.debug(
                    "Resolved generic media type",
                    extra_data={
                        "file_name": file_name,
                        "declared_mime_type": declared or "<none>",
                        "resolved_mime_type": resolved,
                    },
                )

        descriptor = DocumentDescriptor(
            mime_type=resolved,
            file_name=file_name,
            document_type=self.document_kind(file_name),
            declared_mime_type=declared,
        )
        logger.debug(
            "Document detected",
            extra_data={
                "file_name": file_name,
                "mime_type": descriptor.mime_type,
                "document_type": descriptor.document_type,
                "file_size_bytes": len(file_bytes),
            },
        )
        return descriptor

    @staticmethod
    def document_kind(file_name: str) -> str:
        """Classify a document from its file name, e.g. ``John_CV.pdf`` -> ``cv``."""
        stem = Path(file_name or "").stem.lower()
        tokens = {t for t in _split_name(stem) if t}
        for kind, keywords in DOCUMENT_KIND_KEYWORDS:
            for keyword in keywords:
                if keyword in tokens or (len(keyword) > 3 and keyword in stem):
                    return kind
        return "other"

    @staticmethod
    def _guess_from_name(file_name: str) -> Optional[str]:
        suffix = Path(file_name or "").suffix.lower()
        if suffix == ".docx":
            return DOCX_MIME
        if suffix == ".doc":
            return DOC_MIME
        guessed, _ = mimetypes.guess_type(file_name or "")
        return guessed

    @staticmethod
    def _sniff_mime(file_bytes: bytes) -> Optional[str]:
        """Detect MIME type from file signature/magic bytes."""
        head = file_bytes[:4]
        if head.startswith(PDF_SIGNATURE):
            return "application/pdf"
        if head.startswith(ZIP_SIGNATURE):
            # DOCX files are ZIP archives
            return DOCX_MIME
        if head.startswith(OLE_SIGNATURE):
            return DOC_MIME
        if head.startswith(PNG_SIGNATURE):
            return "image/png"
        if file_bytes.startswith(JPEG_SIGNATURE):
            return "image/jpeg"
        if head in TIFF_SIGNATURES:
            return "image/tiff"
        return None


def _split_name(stem: str) -> list[str]:
    for sep in ("-", ".", " "):
        stem = stem.replace(sep, "_")
    return stem.split("_")
