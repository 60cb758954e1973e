import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import fitz  # PyMuPDF

import config
from models import PositionedFragment

logger = logging.getLogger(__name__)

SCANNED_PDF_MESSAGE = (
    "Very little text was extracted. This might be a scanned PDF or image-based PDF. "
    "Please try uploading a text-based PDF."
)


class PDFExtractionError(RuntimeError):
    """Upload or text-layer problem with a message that can be shown to the user."""


@dataclass
class ExtractionResult:
    text: str
    pages: int
    metadata: Dict[str, Any] = field(default_factory=dict)


def validate_pdf_bytes(data: bytes) -> None:
    """Reject uploads that cannot be a usable PDF before handing them to PyMuPDF."""
    if not data:
        raise PDFExtractionError("File appears to be empty")
    if len(data) > config.MAX_UPLOAD_BYTES:
        limit_mb = config.MAX_UPLOAD_BYTES // (1024 * 1024)
        raise PDFExtractionError(f"File size must be less than {limit_mb}MB")
    if len(data) < config.MIN_PDF_BYTES:
        raise PDFExtractionError("PDF file is too small to be valid")
    if not data[:5].startswith(b"%PDF"):
        raise PDFExtractionError("File does not appear to be a valid PDF")


def _open_document(data: bytes) -> "fitz.Document":
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        msg = str(e).lower()
        if "password" in msg or "encrypt" in msg:
            raise PDFExtractionError(
                "This PDF is password protected. Please use an unprotected PDF file."
            ) from e
        raise PDFExtractionError(
            "The PDF file appears to be corrupted or invalid. Please try a different PDF file."
        ) from e

    if doc.needs_pass:
        doc.close()
        raise PDFExtractionError(
            "This PDF is password protected. Please use an unprotected PDF file."
        )
    return doc


def page_fragments(page: "fitz.Page") -> List[PositionedFragment]:
    """
    Flatten a page's text spans into positioned fragments.

    PyMuPDF reports span origins with y growing downward; we flip it so
    that the top of the page has the largest y.
    """
    height = page.rect.height
    fragments: List[PositionedFragment] = []

    page_dict = page.get_text("dict")
    for block in page_dict.get("blocks", []):
        if block.get("type") != 0:  # 0 = text, 1 = image
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text") or ""
                if not text.strip():
                    continue
                bbox = span.get("bbox") or (0, 0, 0, 0)
                origin = span.get("origin") or (bbox[0], bbox[3])
                fragments.append(PositionedFragment(
                    text=text,
                    x=float(origin[0]),
                    y=float(height - origin[1]),
                    font_size=float(span.get("size") or 0),
                ))
    return fragments


def _ensure_text_layer(char_count: int, min_text_length: Optional[int]) -> None:
    limit = config.MIN_TEXT_LENGTH if min_text_length is None else min_text_length
    if char_count < limit:
        logger.warning("Only %d characters extracted, probably a scanned PDF", char_count)
        raise PDFExtractionError(SCANNED_PDF_MESSAGE)


def read_pdf_pages(
    data: bytes,
    min_text_length: Optional[int] = None,
) -> List[List[PositionedFragment]]:
    """Validate a PDF and return its positioned fragments, one list per page."""
    validate_pdf_bytes(data)

    pages: List[List[PositionedFragment]] = []
    with _open_document(data) as doc:
        for page_num, page in enumerate(doc, start=1):
            frags = page_fragments(page)
            logger.debug("Page %d: %d fragments", page_num, len(frags))
            pages.append(frags)

    char_count = sum(len(f.text.strip()) for page in pages for f in page)
    _ensure_text_layer(char_count, min_text_length)
    return pages


def extract_text(data: bytes, min_text_length: Optional[int] = None) -> ExtractionResult:
    """Plain text of every page (blank line between pages) plus document metadata."""
    validate_pdf_bytes(data)

    page_texts: List[str] = []
    with _open_document(data) as doc:
        page_count = doc.page_count
        metadata = {k: v for k, v in (doc.metadata or {}).items() if v}
        for page_num, page in enumerate(doc, start=1):
            txt = page.get_text().strip()
            if txt:
                page_texts.append(txt)
            else:
                logger.warning("No text found on page %d", page_num)

    text = "\n\n".join(page_texts)
    _ensure_text_layer(len(text), min_text_length)
    return ExtractionResult(text=text, pages=page_count, metadata=metadata)
