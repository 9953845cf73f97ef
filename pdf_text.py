# pdf_text.py
# ================================================================
# Text extraction for pairing documents.
#   extract_text(bytes)            → list of lines
#   parse_pairing_document(bytes)  → ParseResult
# PDFs go through PyMuPDF; .txt uploads (text already extracted
# elsewhere) are decoded as UTF-8.
# ================================================================
import logging
from typing import List, Optional

import fitz  # PyMuPDF

from diagnostics import DebugCollector
from pairing_parser import PairingFileParser
from pairing_types import ParseResult

logger = logging.getLogger(__name__)

ALLOWED_EXTS = {"pdf", "txt"}
_PDF_MAGIC = b"%PDF-"

_parser = PairingFileParser()


class ExtractionFailed(Exception):
    """The document's text could not be read. Distinct from 'no pairings found'."""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.filename = filename


# ══════════════════════════════════════════════════════════════════════════════
# FILE HELPERS
# ══════════════════════════════════════════════════════════════════════════════
def file_ext(fn: Optional[str]) -> str:
    return fn.rsplit(".", 1)[-1].lower() if fn and "." in fn else ""


def allowed_file(fn: Optional[str]) -> bool:
    return file_ext(fn) in ALLOWED_EXTS


def _split_lines(text: str) -> List[str]:
    return text.replace("\r\n", "\n").split("\n")


# ══════════════════════════════════════════════════════════════════════════════
# EXTRACTION
# ══════════════════════════════════════════════════════════════════════════════
def _pdf_text(data: bytes, filename: Optional[str]) -> str:
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise ExtractionFailed(f"Could not open PDF: {e}", filename) from e

    try:
        pages = [page.get_text("text") for page in doc]
    except Exception as e:
        raise ExtractionFailed(f"Could not read PDF text: {e}", filename) from e
    finally:
        doc.close()

    logger.info("Extracted text from %d PDF page(s) of %s", len(pages), filename or "<upload>")
    return "\n".join(pages)


def extract_text(data: bytes, filename: Optional[str] = None) -> List[str]:
    """
    Return the document's text as a list of lines.

    The format is taken from the file extension when there is one, and from
    the PDF magic bytes otherwise.

    Raises:
        ExtractionFailed: empty input, unreadable PDF, or undecodable text.
    """
    if not data:
        raise ExtractionFailed("Empty document", filename)

    ext = file_ext(filename)
    is_pdf = ext == "pdf" or (not ext and data.startswith(_PDF_MAGIC))

    if is_pdf:
        text = _pdf_text(data, filename)
    else:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ExtractionFailed(f"Text file is not valid UTF-8: {e}", filename) from e

    lines = _split_lines(text)
    if not any(lines):
        raise ExtractionFailed("Document contains no text", filename)
    return lines


def parse_pairing_document(
    data: bytes,
    filename: Optional[str] = None,
    limit: Optional[int] = None,
    dbg: Optional[DebugCollector] = None,
) -> ParseResult:
    """Extract the document's lines and parse them into pairings."""
    dbg = dbg or DebugCollector(enabled=False)
    lines = extract_text(data, filename)
    dbg.step(f"Extracted {len(lines)} lines from {filename or '<upload>'}")
    result = _parser.parse(lines, limit=limit, dbg=dbg)
    logger.info(
        "Parsed %d pairing(s) from %s (%d issue(s), trailing=%s)",
        len(result.pairings), filename or "<upload>",
        len(result.issues), result.trailing is not None,
    )
    return result
