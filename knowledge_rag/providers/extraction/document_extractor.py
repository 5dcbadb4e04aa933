"""Multi-format text extractor.

Dispatches on the file suffix:

    .pdf            PyMuPDF, page by page
    .epub           ebooklib + BeautifulSoup, one block per XHTML item
    .docx           python-docx paragraphs
    .rtf            striprtf
    .html / .htm    BeautifulSoup visible text
    anything else   UTF-8 text (source code, markdown, config ...)

Parsing is CPU-bound and synchronous, so :meth:`extract` hands it to a
worker thread.
"""

from __future__ import annotations

import asyncio
import io
import re
import tempfile
from pathlib import Path

import ebooklib
import fitz  # PyMuPDF
import structlog
from bs4 import BeautifulSoup
from docx import Document as DocxDocument
from ebooklib import epub
from striprtf.striprtf import rtf_to_text

from knowledge_rag.interfaces.text_extractor import ITextExtractor
from knowledge_rag.models.rag import SourceHandle
from knowledge_rag.utils.errors import CorruptInputError, ExtractionFailedError, UnsupportedFormatError

logger = structlog.get_logger(logger_name=__name__)

_BINARY_SUFFIXES = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp",
        ".zip", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar", ".jar", ".war",
        ".class", ".exe", ".dll", ".so", ".dylib", ".o", ".a", ".pyc",
        ".mp3", ".mp4", ".wav", ".avi", ".mov", ".woff", ".woff2", ".ttf", ".otf",
    }
)

# Bytes inspected for NUL when sniffing plain text.
_SNIFF_BYTES = 8192

_MULTI_NEWLINE = re.compile(r"\n{3,}")


class DocumentTextExtractor(ITextExtractor):
    """Extracts plain text from the formats listed in the module docstring."""

    async def extract(self, handle: SourceHandle) -> tuple[str, dict[str, str]]:
        suffix = Path(handle.filename).suffix.lower()
        if suffix in _BINARY_SUFFIXES:
            raise UnsupportedFormatError(
                message=f"Binary format {suffix} is not indexed: {handle.source_uri}",
                provider_name=self.get_provider_name(),
            )

        text, fmt = await asyncio.to_thread(self._extract_sync, handle, suffix)
        metadata = {"filename": handle.filename, "format": fmt}
        logger.debug("text_extracted", source=handle.source_uri, format=fmt, chars=len(text))
        return text, metadata

    def get_provider_name(self) -> str:
        return "document_extractor"

    # ------------------------------------------------------------------
    # Format dispatch
    # ------------------------------------------------------------------

    def _extract_sync(self, handle: SourceHandle, suffix: str) -> tuple[str, str]:
        try:
            data = handle.read_bytes()
        except OSError as exc:
            raise CorruptInputError(
                message=f"Cannot read {handle.source_uri}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        try:
            if suffix == ".pdf":
                return self._pdf(data), "pdf"
            if suffix == ".epub":
                return self._epub(handle, data), "epub"
            if suffix == ".docx":
                return self._docx(data), "docx"
            if suffix == ".rtf":
                return rtf_to_text(self._decode(handle, data)), "rtf"
            if suffix in (".html", ".htm", ".xhtml"):
                return self._html(self._decode(handle, data)), "html"
        except ExtractionFailedError:
            raise
        except Exception as exc:
            raise CorruptInputError(
                message=f"Failed to parse {handle.source_uri} as {suffix.lstrip('.')}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if b"\x00" in data[:_SNIFF_BYTES]:
            raise UnsupportedFormatError(
                message=f"Binary content in {handle.source_uri}",
                provider_name=self.get_provider_name(),
            )
        return self._decode(handle, data), "text"

    def _decode(self, handle: SourceHandle, data: bytes) -> str:
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise CorruptInputError(
                message=f"{handle.source_uri} is not valid UTF-8: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    @staticmethod
    def _pdf(data: bytes) -> str:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text() for page in doc]
        return "\n\n".join(p.strip() for p in pages if p.strip())

    @staticmethod
    def _docx(data: bytes) -> str:
        doc = DocxDocument(io.BytesIO(data))
        return "\n\n".join(para.text for para in doc.paragraphs if para.text.strip())

    @staticmethod
    def _html(markup: str) -> str:
        soup = BeautifulSoup(markup, "html.parser")
        for element in soup(["script", "style"]):
            element.decompose()
        text = soup.get_text(separator="\n")
        return _MULTI_NEWLINE.sub("\n\n", text).strip()

    def _epub(self, handle: SourceHandle, data: bytes) -> str:
        # ebooklib wants a filesystem path.
        if handle.path is not None:
            book = epub.read_epub(str(handle.path), options={"ignore_ncx": True})
        else:
            with tempfile.NamedTemporaryFile(suffix=".epub") as tmp:
                tmp.write(data)
                tmp.flush()
                book = epub.read_epub(tmp.name, options={"ignore_ncx": True})

        sections: list[str] = []
        for item in book.get_items_of_type(ebooklib.ITEM_DOCUMENT):
            html_content = item.get_content().decode("utf-8", errors="replace")
            text = self._html(html_content)
            if text:
                sections.append(text)
        return "\n\n".join(sections)
