"""
PDF processing service using PyMuPDF with an OCR fallback.

Extracts per-page text from PDF documents. Pages that look scanned (very low
text density) are rendered with pdf2image (poppler) and read with Tesseract.
"""

import logging
import re
from typing import BinaryIO

from ..models import PageText

logger = logging.getLogger(__name__)

# Pages below this many non-whitespace characters per line are treated as scanned
MIN_CHARS_PER_LINE = 15


class PDFConversionError(Exception):
    """Raised when PDF text extraction fails."""

    pass


def check_pdf_header(pdf_bytes: bytes) -> None:
    """
    Reject bytes that are empty or do not carry the PDF magic header.

    Raises:
        PDFConversionError: If the bytes cannot be a PDF document.
    """
    if not pdf_bytes:
        raise PDFConversionError("Empty PDF file provided")
    if pdf_bytes[:4] != b"%PDF":
        raise PDFConversionError("Invalid PDF file: does not start with PDF header")


def char_density(text: str) -> float:
    """Average number of non-whitespace characters per non-empty line."""
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return 0.0
    total_chars = len(re.sub(r"\s", "", text))
    return total_chars / len(lines)


def normalize_page_text(text: str) -> str:
    """De-hyphenate line breaks and tidy whitespace."""
    text = text.replace("-\n", "")
    text = re.sub(r"\s+\n", "\n", text)
    text = re.sub(r"[^\S\r\n]{2,}", " ", text)
    return text.strip()


class PDFService:
    """
    Service for PDF text extraction.

    Uses PyMuPDF for embedded text and falls back to OCR per page.
    """

    def __init__(
        self,
        dpi: int = 300,
        ocr_language: str = "eng",
        min_chars_per_line: float = MIN_CHARS_PER_LINE,
    ):
        """
        Initialize the PDF service.

        Args:
            dpi: Render resolution for OCR. Higher = better quality but slower.
            ocr_language: Tesseract language code.
            min_chars_per_line: Density below which a page is OCR'd.
        """
        self.dpi = dpi
        self.ocr_language = ocr_language
        self.min_chars_per_line = min_chars_per_line

    @staticmethod
    def _read_bytes(file_bytes: bytes | BinaryIO) -> bytes:
        if hasattr(file_bytes, "read"):
            return file_bytes.read()
        return file_bytes

    def extract_pages(self, file_bytes: bytes | BinaryIO) -> list[PageText]:
        """
        Extract normalized text for every page of a PDF.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            One PageText per page, in page order.

        Raises:
            PDFConversionError: If the file is empty, not a PDF or unreadable.
        """
        pdf_bytes = self._read_bytes(file_bytes)

        check_pdf_header(pdf_bytes)

        try:
            import fitz  # PyMuPDF
        except ImportError as e:
            logger.error("PyMuPDF not installed: %s", e)
            raise PDFConversionError(
                "PyMuPDF library not installed. Run: pip install PyMuPDF"
            ) from e

        logger.info("Starting smart PDF extraction...")
        try:
            with fitz.open(stream=pdf_bytes, filetype="pdf") as document:
                raw_pages = [page.get_text() for page in document]
        except Exception as e:
            logger.exception("Unexpected error during PDF text extraction")
            raise PDFConversionError(f"Invalid or corrupted PDF file: {e}") from e

        logger.info("Extracted %d pages from PDF", len(raw_pages))

        pages: list[PageText] = []
        for index, page_text in enumerate(raw_pages):
            page_number = index + 1
            density = char_density(page_text)
            logger.debug("Page %d: density = %.2f chars/line", page_number, density)

            if density < self.min_chars_per_line:
                logger.warning(
                    "Page %d appears to be scanned (low text density), running OCR...",
                    page_number,
                )
                ocr_text = self._ocr_page(pdf_bytes, page_number)
                pages.append(
                    PageText(
                        page_number=page_number,
                        text=normalize_page_text(ocr_text or page_text),
                        is_ocr=True,
                    )
                )
            else:
                pages.append(
                    PageText(
                        page_number=page_number,
                        text=normalize_page_text(page_text),
                        is_ocr=False,
                    )
                )

        logger.info(
            "Smart extraction complete: %d pages (%d OCR'd)",
            len(pages),
            sum(1 for page in pages if page.is_ocr),
        )
        return pages

    def _ocr_page(self, pdf_bytes: bytes, page_number: int) -> str:
        """
        OCR a single page.

        Returns an empty string when OCR is unavailable or fails, so the
        caller keeps whatever embedded text the page had.
        """
        try:
            import pytesseract
            from pdf2image import convert_from_bytes
        except ImportError as e:
            logger.warning("OCR unavailable for page %d: %s", page_number, e)
            return ""

        try:
            logger.info("Running OCR on page %d...", page_number)
            images = convert_from_bytes(
                pdf_bytes,
                dpi=self.dpi,
                first_page=page_number,
                last_page=page_number,
            )
            if not images:
                return ""
            text = pytesseract.image_to_string(images[0], lang=self.ocr_language)
            logger.info("OCR completed for page %d: %d chars", page_number, len(text))
            return text
        except Exception as e:
            logger.warning("OCR failed for page %d: %s", page_number, e)
            return ""


# Singleton instance for convenience
_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        _pdf_service = PDFService()
    return _pdf_service
