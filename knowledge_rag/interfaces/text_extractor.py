"""Abstract base class for file-to-text extraction."""

from __future__ import annotations

from abc import ABC, abstractmethod

from knowledge_rag.models.rag import SourceHandle


class ITextExtractor(ABC):
    """Turns one source file into plain text plus format metadata."""

    @abstractmethod
    async def extract(self, handle: SourceHandle) -> tuple[str, dict[str, str]]:
        """Extract the text of *handle*.

        Returns
        -------
        tuple[str, dict[str, str]]
            The plain text and metadata such as ``format`` and ``filename``.

        Raises
        ------
        knowledge_rag.utils.errors.UnsupportedFormatError
            For binary or unrecognised content.
        knowledge_rag.utils.errors.CorruptInputError
            When a recognised format fails to parse.
        """
