"""Document loaders — extract plain text from uploaded files by MIME type."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

from docrag.exceptions import UnsupportedInputError

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
TEXT_MIMES = frozenset({"text/plain", "text/markdown"})

mimetypes.add_type("text/markdown", ".md")


def guess_mime_type(path: str | Path) -> str:
    """Best-effort MIME type from the file extension (``""`` when unknown)."""
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or ""


def is_supported(mime_type: str) -> bool:
    return mime_type == PDF_MIME or "xml" in mime_type or mime_type in TEXT_MIMES


def extract_text(path: str | Path, mime_type: str) -> str:
    """Return the text content of the file at *path*.

    Parameters
    ----------
    path:
        Location of the stored upload.
    mime_type:
        Declared content type. PDF, any ``*xml*`` type, plain text and
        Markdown are supported.

    Raises
    ------
    UnsupportedInputError
        When *mime_type* is not one of the supported types.
    """
    path = Path(path)
    if mime_type == PDF_MIME:
        return load_pdf(path)
    if "xml" in mime_type:
        return load_xml(path)
    if mime_type in TEXT_MIMES:
        return path.read_text(encoding="utf-8")
    raise UnsupportedInputError(mime_type, file_name=path.name)


def load_pdf(path: str | Path) -> str:
    """Extract page texts from a PDF, one line per page."""
    from langchain_community.document_loaders import PyPDFLoader

    pages = PyPDFLoader(str(path)).load()
    logger.debug("Extracted %d pages from %s", len(pages), path)
    return "\n".join(page.page_content for page in pages)


def load_xml(path: str | Path) -> str:
    """Concatenate the text nodes of an XML document, ignoring attributes."""
    from bs4 import BeautifulSoup

    soup = BeautifulSoup(Path(path).read_text(encoding="utf-8"), "html.parser")
    return soup.get_text(separator=" ", strip=True)
