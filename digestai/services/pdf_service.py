"""PDF text extraction and cleanup."""

import re
import unicodedata
from collections import Counter
from dataclasses import dataclass
from typing import Optional

import fitz  # PyMuPDF

from digestai.core.config import settings
from digestai.core.exceptions import ContentExtractionError, InvalidInputError
from digestai.services.text_utils import count_words

PDF_MAGIC = b"%PDF-"

# Typographic characters folded to plain equivalents before summarizing
UNICODE_REPLACEMENTS = {
    "“": '"', "”": '"', "„": '"',
    "‘": "'", "’": "'", "‚": "'",
    "–": "-", "−": "-", "‐": "-", "‑": "-",
    "\u00a0": " ", "\u2002": " ", "\u2003": " ", "\u2009": " ",
    "\u200b": "", "\ufeff": "",
    "•": "-", "●": "-", "▪": "-", "►": "-",
    "…": "...",
}


@dataclass
class PDFContent:
    text: str
    page_count: int
    title: Optional[str]
    author: Optional[str]
    word_count: int


class PDFService:
    """Extracts and normalizes the text layer of uploaded PDFs."""

    def validate(self, content: bytes) -> None:
        max_bytes = settings.MAX_PDF_SIZE_MB * 1024 * 1024
        if len(content) == 0:
            raise InvalidInputError("Empty file uploaded.")
        if len(content) > max_bytes:
            raise InvalidInputError(
                f"PDF file is too large. Maximum size is {settings.MAX_PDF_SIZE_MB}MB."
            )
        if not content.startswith(PDF_MAGIC):
            raise InvalidInputError("Invalid PDF file format.")

    def extract(self, pdf_content: bytes) -> PDFContent:
        """Extract cleaned text, page count and document metadata."""
        self.validate(pdf_content)

        text_parts = []
        try:
            with fitz.open(stream=pdf_content, filetype="pdf") as doc:
                if doc.needs_pass:
                    raise ValueError("document is encrypted")
                page_count = doc.page_count
                metadata = doc.metadata or {}
                for page in doc:
                    page_text = page.get_text()
                    if page_text.strip():
                        text_parts.append(page_text)
        except (RuntimeError, ValueError) as e:
            raise ContentExtractionError(
                "Failed to parse PDF. The file may be corrupted or password-protected."
            ) from e

        text = self.cleanup_text("\n\n".join(text_parts))
        return PDFContent(
            text=text,
            page_count=page_count,
            title=(metadata.get("title") or "").strip() or None,
            author=(metadata.get("author") or "").strip() or None,
            word_count=count_words(text),
        )

    def _normalize_unicode(self, text: str) -> str:
        text = unicodedata.normalize("NFKC", text)
        for old, new in UNICODE_REPLACEMENTS.items():
            text = text.replace(old, new)
        return text

    def _fix_hyphenated_words(self, text: str) -> str:
        """Rejoin words split by hyphens at line breaks."""
        return re.sub(r"(\w+)-[ \t]*\n[ \t]*(\w+)", r"\1\2", text)

    def _remove_headers_footers(self, text: str) -> str:
        """Drop short lines repeated on many pages (running headers and footers)."""
        lines = text.split("\n")
        if len(lines) < 20:
            return text

        line_counts = Counter(line.strip() for line in lines if line.strip())
        threshold = max(3, len(lines) // 50)
        repeated = {
            line for line, count in line_counts.items()
            if count >= threshold and len(line) < 100
        }
        return "\n".join(line for line in lines if line.strip() not in repeated)

    def _remove_page_numbers(self, text: str) -> str:
        cleaned = []
        for line in text.split("\n"):
            stripped = line.strip()
            if stripped.isdigit():
                continue
            if re.match(r"^(page\s*)?\d+(\s*of\s*\d+)?$", stripped, re.IGNORECASE):
                continue
            if re.match(r"^-\s*\d+\s*-$", stripped):
                continue
            cleaned.append(line)
        return "\n".join(cleaned)

    def _clean_whitespace(self, text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\t", " ")
        text = re.sub(r" +", " ", text)
        text = "\n".join(line.strip() for line in text.split("\n"))
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()

    def cleanup_text(self, text: str) -> str:
        """
        Normalize extracted text before it is sent to the model.

        Pipeline:
        1. Normalize unicode characters
        2. Fix hyphenated words across line breaks
        3. Remove headers/footers
        4. Remove page numbers
        5. Clean whitespace
        """
        text = self._normalize_unicode(text)
        text = self._fix_hyphenated_words(text)
        text = self._remove_headers_footers(text)
        text = self._remove_page_numbers(text)
        return self._clean_whitespace(text)


# Singleton instance
pdf_service = PDFService()
