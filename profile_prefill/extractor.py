"""Per-format text extraction backends and the dispatching TextExtractor."""

import io
import os
import re
import shutil
import subprocess
import tempfile
import unicodedata
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional, Protocol

import fitz  # PyMuPDF
import pymupdf4llm
import pytesseract
from docx import Document
from PIL import Image, ImageFilter, ImageOps

from profile_prefill.config import ExtractorConfig, OCRConfig
from profile_prefill.detector import DOC_MIME, DOCX_MIME
from profile_prefill.exceptions import DecodingError, ExtractionError, UnsupportedFormatError
from profile_prefill.logger import Timer, get_logger

logger = get_logger(__name__)

PDF_MIME_TYPES = {"application/pdf", "application/x-pdf"}
WORD_MIME_TYPES = {DOCX_MIME, DOC_MIME}
IMAGE_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/tiff", "image/bmp", "image/webp"}
TEXT_MIME_TYPES = {"text/plain", "text/markdown", "text/csv"}

# Anything outside word characters, whitespace and common punctuation is dropped
_UNSAFE_CHARS = re.compile(r"[^\w\s.,;:!?@#$%&*()\-+=\[\]{}|\\/\"'<>~^`_’‘“”–—•]")
_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_BLANK_LINE_RUNS = re.compile(r"\n{3,}")


def normalize_text(text: str, max_chars: Optional[int] = None) -> str:
    """Normalize extracted text into a stable UTF-8 blob.

    NFC unicode, LF line endings, unsafe characters removed, whitespace runs
    collapsed, lines stripped, at most one blank line between paragraphs.
    """
    if not text:
        return ""
    t = unicodedata.normalize("NFC", text)
    t = t.replace("\r\n", "\n").replace("\r", "\n")
    t = _UNSAFE_CHARS.sub(" ", t)
    t = _HORIZONTAL_WS.sub(" ", t)
    t = "\n".join(line.strip() for line in t.split("\n"))
    t = _BLANK_LINE_RUNS.sub("\n\n", t).strip()
    if max_chars and len(t) > max_chars:
        t = t[:max_chars].rstrip()
    return t


class TextExtractionBackend(Protocol):
    def extract(self, file_bytes: bytes, mime_type: str) -> str:
        ...


class PlainTextBackend:
    """Decodes UTF-8 text, rejecting content that is clearly binary."""

    def extract(self, file_bytes: bytes, mime_type: str = "text/plain") -> str:
        if b"\x00" in file_bytes[:8192]:
            raise DecodingError("Content is binary, not plain text")
        try:
            return file_bytes.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise DecodingError("Unable to decode text (not valid UTF-8)") from exc


class PdfBackend:
    """PyMuPDF4LLM native extraction with Tesseract OCR for scanned PDFs."""

    def __init__(self, config: Optional[OCRConfig] = None, fontsize_limit: int = 3):
        self.config = config or OCRConfig()
        self.fontsize_limit = fontsize_limit

    def extract(self, file_bytes: bytes, mime_type: str = "application/pdf") -> str:
        text, _ = self.extract_with_ocr_flag(file_bytes)
        return text

    def extract_with_ocr_flag(self, file_bytes: bytes) -> tuple[str, bool]:
        """Extract text and report whether OCR output was used."""
        try:
            pdf_document = fitz.open(stream=file_bytes, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(f"Unreadable PDF: {exc}") from exc

        try:
            page_count = len(pdf_document)
            with Timer("pdf_native_extraction") as native_timer:
                text = pymupdf4llm.to_markdown(
                    pdf_document,
                    force_text=True,
                    write_images=False,
                    ignore_images=True,
                    fontsize_limit=self.fontsize_limit,
                ).strip()

            logger.debug(
                "PDF native text extraction completed",
                extra_data={
                    "characters_extracted": len(text),
                    "page_count": page_count,
                    "extraction_time_ms": native_timer.get_elapsed_ms(),
                },
            )

            if self._should_ocr_pdf(len(text), page_count, len(file_bytes)):
                logger.info(
                    "Triggering OCR fallback for PDF",
                    extra_data={"native_characters": len(text), "page_count": page_count},
                )
                ocr_text = self._ocr_pdf(file_bytes, page_count)
                # Prefer OCR output only when it recovered more text
                if len(ocr_text) > len(text):
                    return ocr_text, True
            return text, False
        finally:
            pdf_document.close()

    def _ocr_page(self, file_bytes: bytes, page_num: int) -> tuple[int, str]:
        """OCR a single page; worker function for the page pool."""
        try:
            with fitz.open(stream=file_bytes, filetype="pdf") as pdf_document:
                pix = pdf_document[page_num].get_pixmap(dpi=self.config.dpi)
                image = Image.open(io.BytesIO(pix.tobytes("png")))
            page_text = pytesseract.image_to_string(
                image,
                lang=self.config.languages,
                config=f"--psm {self.config.psm_mode}",
            )
            return page_num, page_text.strip()
        except Exception as exc:
            logger.warning(
                f"OCR failed for page {page_num + 1}",
                extra_data={"error_type": type(exc).__name__, "error": str(exc)},
            )
            return page_num, ""

    def _ocr_pdf(self, file_bytes: bytes, page_count: int) -> str:
        page_results: dict[int, str] = {}
        with Timer("pdf_ocr") as ocr_timer:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                futures = [
                    executor.submit(self._ocr_page, file_bytes, page_num)
                    for page_num in range(page_count)
                ]
                for future in as_completed(futures):
                    page_num, page_text = future.result()
                    page_results[page_num] = page_text

        # Reassemble in page order
        pages = [page_results[i] for i in range(page_count) if page_results.get(i)]
        total_text = "\n\n".join(pages)
        logger.info(
            "PDF OCR completed",
            extra_data={
                "page_count": page_count,
                "pages_with_text": len(pages),
                "total_characters": len(total_text),
                "ocr_time_ms": ocr_timer.get_elapsed_ms(),
            },
        )
        return total_text

    def _should_ocr_pdf(self, native_char_count: int, page_count: int, file_size_bytes: int) -> bool:
        """Decide whether to run OCR after native extraction."""
        if native_char_count == 0:
            return True
        if page_count > 0 and native_char_count / page_count < self.config.pdf_ocr_min_chars_per_page:
            return True
        return (
            native_char_count < self.config.pdf_ocr_min_chars
            and file_size_bytes >= self.config.pdf_ocr_min_file_size_bytes
        )


class WordBackend:
    """python-docx for DOCX; system converters for legacy DOC."""

    def extract(self, file_bytes: bytes, mime_type: str = DOCX_MIME) -> str:
        if mime_type == DOC_MIME:
            return self._extract_doc(file_bytes)
        return self._extract_docx(file_bytes)

    @staticmethod
    def _extract_docx(file_bytes: bytes) -> str:
        try:
            doc = Document(io.BytesIO(file_bytes))
        except Exception as exc:
            raise ExtractionError(f"Unreadable DOCX: {exc}") from exc

        parts = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
        # Table rows become pipe-joined lines so sections laid out in tables survive
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(dict.fromkeys(cells)))

        logger.debug(
            "DOCX extraction completed",
            extra_data={"paragraph_count": len(doc.paragraphs), "table_count": len(doc.tables)},
        )
        return "\n".join(parts)

    @staticmethod
    def _extract_doc(file_bytes: bytes) -> str:
        """Extract legacy .doc using textutil (macOS) or LibreOffice when available."""
        with tempfile.NamedTemporaryFile(suffix=".doc", delete=False) as tmp_file:
            tmp_file.write(file_bytes)
            tmp_path = Path(tmp_file.name)

        try:
            if shutil.which("textutil"):
                result = subprocess.run(
                    ["textutil", "-convert", "txt", str(tmp_path), "-stdout"],
                    capture_output=True,
                    text=True,
                )
                if result.returncode == 0 and result.stdout.strip():
                    return result.stdout

            soffice = shutil.which("soffice") or shutil.which("libreoffice")
            if soffice:
                with tempfile.TemporaryDirectory() as tmp_dir:
                    conversion = subprocess.run(
                        [soffice, "--headless", "--convert-to", "txt:Text", str(tmp_path), "--outdir", tmp_dir],
                        capture_output=True,
                        text=True,
                    )
                    out_path = Path(tmp_dir) / f"{tmp_path.stem}.txt"
                    if conversion.returncode == 0 and out_path.exists():
                        return out_path.read_text(encoding="utf-8", errors="ignore")

            raise ExtractionError(
                "Failed to extract .doc file. Install textutil (macOS) or LibreOffice, or convert to DOCX."
            )
        finally:
            tmp_path.unlink(missing_ok=True)


class ImageBackend:
    """Tesseract OCR over a preprocessed copy of the image."""

    def __init__(self, config: Optional[OCRConfig] = None):
        self.config = config or OCRConfig()

    def preprocess(self, image: Image.Image) -> Image.Image:
        """Downscale to the bounded dimension, grayscale, normalize contrast, sharpen."""
        processed = image.copy()
        bound = self.config.max_image_dimension
        processed.thumbnail((bound, bound))
        processed = ImageOps.grayscale(processed)
        processed = ImageOps.autocontrast(processed)
        return processed.filter(ImageFilter.SHARPEN)

    def extract(self, file_bytes: bytes, mime_type: str = "image/png") -> str:
        try:
            image = Image.open(io.BytesIO(file_bytes))
            image.load()
        except Exception as exc:
            raise ExtractionError(f"Unreadable image: {exc}") from exc

        target = image
        if self.config.enable_image_preprocessing:
            try:
                target = self.preprocess(image)
            except Exception as exc:
                logger.warning(
                    "Image preprocessing failed, using original image",
                    extra_data={"error_type": type(exc).__name__, "error": str(exc)},
                )
                target = image

        with Timer("image_ocr") as timer:
            try:
                text = pytesseract.image_to_string(
                    target,
                    lang=self.config.languages,
                    config=f"--psm {self.config.psm_mode}",
                )
            except Exception as exc:
                raise ExtractionError(f"Failed to extract text from image: {exc}") from exc

        logger.info(
            "Image OCR completed",
            extra_data={
                "image_dimensions": f"{image.size[0]}x{image.size[1]}",
                "characters_extracted": len(text.strip()),
                "ocr_time_ms": timer.get_elapsed_ms(),
            },
        )
        return text


class TextExtractor:
    """Dispatches on media type and returns normalized text.

    Unknown media types, and known types whose backend fails, are retried as
    plain text before the document is given up on.
    """

    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        backends: Optional[dict[str, TextExtractionBackend]] = None,
    ):
        self.config = config or ExtractorConfig()
        ocr_config = self.config.ocr_config

        if ocr_config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = ocr_config.tesseract_cmd
        if ocr_config.tessdata_prefix:
            os.environ["TESSDATA_PREFIX"] = ocr_config.tessdata_prefix

        self.pdf_backend = PdfBackend(ocr_config, fontsize_limit=self.config.fontsize_limit)
        self.text_backend = PlainTextBackend()
        word_backend = WordBackend()
        image_backend = ImageBackend(ocr_config)

        self.backends: dict[str, TextExtractionBackend] = {}
        self.backends.update({m: self.pdf_backend for m in PDF_MIME_TYPES})
        self.backends.update({m: word_backend for m in WORD_MIME_TYPES})
        self.backends.update({m: image_backend for m in IMAGE_MIME_TYPES})
        self.backends.update({m: self.text_backend for m in TEXT_MIME_TYPES})
        if backends:
            self.backends.update(backends)

    def supports(self, mime_type: str) -> bool:
        return mime_type in self.backends

    def extract(self, file_bytes: bytes, mime_type: str, file_name: str = "") -> tuple[str, bool]:
        """Extract normalized text.

        Returns:
            Tuple of (normalized_text, ocr_used)

        Raises:
            UnsupportedFormatError: unknown media type that is not plain text either
            ExtractionError: backend failure, or no text left after normalization
        """
        backend = self.backends.get(mime_type)
        ocr_used = False

        if backend is None:
            logger.warning(
                "No backend for media type, trying plain text",
                extra_data={"file_name": file_name, "mime_type": mime_type or "<none>"},
            )
            try:
                raw = self.text_backend.extract(file_bytes, mime_type)
            except DecodingError as exc:
                raise UnsupportedFormatError(f"Unsupported file format: {mime_type or 'unknown'}") from exc
        else:
            try:
                if backend is self.pdf_backend:
                    raw, ocr_used = self.pdf_backend.extract_with_ocr_flag(file_bytes)
                else:
                    raw = backend.extract(file_bytes, mime_type)
                    ocr_used = mime_type in IMAGE_MIME_TYPES
            except Exception as exc:
                if backend is self.text_backend:
                    raise
                logger.warning(
                    "Backend failed, trying plain text",
                    extra_data={
                        "file_name": file_name,
                        "mime_type": mime_type,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                try:
                    raw = self.text_backend.extract(file_bytes, mime_type)
                except DecodingError:
                    if isinstance(exc, ExtractionError):
                        raise exc
                    raise ExtractionError(f"Failed to extract document: {exc}") from exc

        text = normalize_text(raw, self.config.max_text_chars)
        if not text:
            raise ExtractionError("No text content could be extracted from the document")
        return text, ocr_used
