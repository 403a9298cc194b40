"""Configuration classes for the pre-fill pipeline."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# .env next to the package or at the project root, then the process env
_base = Path(__file__).resolve().parent
for _env_path in (_base / ".env", _base.parent / ".env"):
    if load_dotenv(_env_path):
        break


@dataclass
class OCRConfig:
    """Configuration for OCR of images and scanned PDF pages.

    Examples:
        >>> # Defaults: English, 150 DPI, 3 workers
        >>> config = OCRConfig()

        >>> # Better quality on scanned multi-language certificates
        >>> config = OCRConfig(languages="eng+fra", dpi=300)
    """

    tesseract_cmd: str = "tesseract"
    """Path to tesseract binary. Default: "tesseract" (assumes in PATH)."""

    tessdata_prefix: Optional[str] = None
    """Optional path to tessdata directory. If None, uses system default."""

    languages: str = "eng"
    """OCR languages in Tesseract format (e.g., "eng", "eng+fra")."""

    dpi: int = 150
    """Render DPI for scanned PDF pages. Higher = slower but more accurate."""

    psm_mode: int = 6
    """Page segmentation mode (0-13). Default: 6 (uniform block of text).

    Common modes:
    - 3: Fully automatic page segmentation
    - 6: Uniform block of text (good for résumés)
    - 11: Sparse text (certificates with few words)
    """

    max_workers: int = 3
    """Parallel workers for per-page OCR of scanned PDFs."""

    pdf_ocr_min_chars: int = 500
    """Native PDF text below this many characters may trigger OCR."""

    pdf_ocr_min_chars_per_page: int = 150
    """Average characters per page below which a PDF is treated as scanned."""

    pdf_ocr_min_file_size_bytes: int = 200_000
    """Small files with little text are assumed to be text-based PDFs."""

    enable_image_preprocessing: bool = True
    """Downscale, grayscale, contrast-normalize and sharpen images before OCR."""

    max_image_dimension: int = 2000
    """Images are downscaled to fit in a square of this size (never enlarged)."""


@dataclass
class ExtractorConfig:
    """Configuration for text extraction and normalization."""

    ocr_config: OCRConfig = field(default_factory=OCRConfig)
    max_text_chars: int = 50_000
    """Normalized text is truncated to this length."""

    raw_text_sample_chars: int = 1000
    """Length of the text sample kept on each ParsedDocument."""

    fontsize_limit: int = 3
    """PDF text smaller than this point size is ignored."""


@dataclass
class GenerationConfig:
    """Configuration for the external answer-generation collaborator."""

    api_key: str = ""
    model: str = "gpt-4o-mini"
    timeout_seconds: float = 20.0
    """Per-call timeout; a call exceeding it degrades to the fallback answer."""

    max_tokens: int = 500
    temperature: float = 0.7
    max_workers: int = 4
    """Threads available for concurrent generation calls."""

    success_confidence: float = 0.7
    fallback_confidence: float = 0.3
    default_answer: str = "Not specified"
    """Canonical fallback value when a question has no options."""

    @classmethod
    def from_env(cls) -> "GenerationConfig":
        """Build a config from OPENAI_API_KEY, MODEL_NAME and GENERATION_TIMEOUT."""
        return cls(
            api_key=os.getenv("OPENAI_API_KEY", ""),
            model=os.getenv("MODEL_NAME", "gpt-4o-mini"),
            timeout_seconds=float(os.getenv("GENERATION_TIMEOUT", "20")),
        )


@dataclass
class PipelineConfig:
    """Top-level configuration for a pipeline run."""

    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig.from_env)
    max_workers: int = 4
    """Documents processed in parallel within one batch."""

    confidence_cap: int = 3
    """Evidence count at which auto-fill confidence reaches 1.0."""
