"""Token-window text splitting.

Splits a :class:`~knowledge_rag.models.rag.Document` into
:class:`~knowledge_rag.models.rag.DocumentChunk` objects of at most
``max_tokens`` tokens, where consecutive windows share ``overlap_tokens``
tokens of trailing context.

Each chunk's text is the exact slice of the source spanning its tokens,
so every token of the source appears in at least one chunk.

When a window is cut before the end of the text, the cut is pulled back
to the last sentence terminator (``.``, ``!``, ``?`` or a line break)
provided the window still holds at least ``min_chunk_tokens`` tokens.
Otherwise the hard token cut stands.

Tokenization is pluggable.  ``"regex"`` (the default) treats each word
and each punctuation mark as one token and needs no model files; any
other value is loaded as a HuggingFace ``tokenizers`` model id.
"""

from __future__ import annotations

import re
import uuid

import structlog

from knowledge_rag.models.rag import Document, DocumentChunk
from knowledge_rag.utils.errors import ConfigurationError, InvalidArgumentError

logger = structlog.get_logger(logger_name=__name__)

_REGEX_TOKEN = re.compile(r"\w+|[^\w\s]")

_SENTENCE_END = frozenset({".", "!", "?", "。", "！", "？"})

# Character offsets (start, end) of one token in the source text.
Span = tuple[int, int]


class TokenWindowChunker:
    """Splits documents into overlapping token windows.

    Parameters
    ----------
    max_tokens:
        Maximum tokens per chunk (default 800).
    overlap_tokens:
        Tokens repeated at the start of the next chunk (default 100).
        Must be smaller than *max_tokens*.
    min_chunk_tokens:
        Smallest window the sentence-boundary pullback may produce.
    tokenizer:
        ``"regex"`` or a HuggingFace tokenizer id such as ``"bert-base-uncased"``.
    """

    def __init__(
        self,
        max_tokens: int = 800,
        overlap_tokens: int = 100,
        min_chunk_tokens: int = 80,
        tokenizer: str = "regex",
    ) -> None:
        self._validate(max_tokens, overlap_tokens)
        self._max_tokens = max_tokens
        self._overlap = overlap_tokens
        self._min_chunk_tokens = min_chunk_tokens
        self._tokenizer_name = tokenizer
        self._hf_tokenizer = None if tokenizer == "regex" else self._load_tokenizer(tokenizer)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(
        self,
        document: Document,
        max_tokens: int | None = None,
        overlap_tokens: int | None = None,
    ) -> list[DocumentChunk]:
        """Split *document* into ordered chunks.

        Parameters
        ----------
        document:
            The document to split.  Its ``tag`` and ``metadata`` are copied
            onto every chunk.
        max_tokens, overlap_tokens:
            Per-call overrides of the constructor values.

        Returns
        -------
        list[DocumentChunk]
            Ordinals 0..n-1.  Empty or whitespace-only text gives ``[]``.

        Raises
        ------
        InvalidArgumentError
            If ``max_tokens < 1`` or ``overlap_tokens`` is outside ``[0, max_tokens)``.
        """
        max_tokens = self._max_tokens if max_tokens is None else max_tokens
        overlap = self._overlap if overlap_tokens is None else overlap_tokens
        self._validate(max_tokens, overlap)

        text = document.raw_text
        if not text or not text.strip():
            return []

        spans = self.tokenize(text)
        windows = self._windows(text, spans, max_tokens, overlap)

        chunks = [
            DocumentChunk(
                chunk_id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"{document.document_id}#{ordinal}")),
                parent_document_id=document.document_id,
                ordinal=ordinal,
                text=text[spans[start][0] : spans[end - 1][1]],
                tag=document.tag,
                token_count=end - start,
                metadata=dict(document.metadata),
            )
            for ordinal, (start, end) in enumerate(windows)
        ]

        logger.debug(
            "chunking_complete",
            source=document.source_uri,
            num_chunks=len(chunks),
            total_tokens=len(spans),
        )
        return chunks

    def tokenize(self, text: str) -> list[Span]:
        """Return the character span of every token in *text*."""
        if self._hf_tokenizer is not None:
            encoding = self._hf_tokenizer.encode(text, add_special_tokens=False)
            return [(s, e) for s, e in encoding.offsets if e > s]
        return [m.span() for m in _REGEX_TOKEN.finditer(text)]

    def count_tokens(self, text: str) -> int:
        return len(self.tokenize(text))

    # ------------------------------------------------------------------
    # Window placement
    # ------------------------------------------------------------------

    def _windows(self, text: str, spans: list[Span], max_tokens: int, overlap: int) -> list[tuple[int, int]]:
        """Return ``(start, end)`` token index pairs, end exclusive."""
        total = len(spans)
        windows: list[tuple[int, int]] = []
        start = 0
        while start < total:
            end = min(start + max_tokens, total)
            if end < total:
                end = self._pull_back_to_sentence(text, spans, start, end, overlap)
            windows.append((start, end))
            if end >= total:
                break
            start = max(end - overlap, start + 1)
        return windows

    def _pull_back_to_sentence(self, text: str, spans: list[Span], start: int, end: int, overlap: int) -> int:
        """Move *end* back to just after the last sentence break in the window.

        The shortened window keeps more than *overlap* tokens so the next
        window still starts after this one.
        """
        floor = start + max(self._min_chunk_tokens, overlap + 1)
        for i in range(end - 1, floor - 2, -1):
            if i < start:
                break
            token_text = text[spans[i][0] : spans[i][1]]
            gap = text[spans[i][1] : spans[i + 1][0]]
            if token_text in _SENTENCE_END or "\n" in gap:
                return i + 1
        return end

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(max_tokens: int, overlap: int) -> None:
        if max_tokens < 1:
            raise InvalidArgumentError(message=f"max_tokens must be >= 1, got {max_tokens}")
        if overlap < 0 or overlap >= max_tokens:
            raise InvalidArgumentError(
                message=f"overlap_tokens must be in [0, {max_tokens}), got {overlap}"
            )

    @staticmethod
    def _load_tokenizer(name: str):  # noqa: ANN205
        """Load a HuggingFace tokenizer; chunk boundaries depend on it, so failure is fatal."""
        from tokenizers import Tokenizer

        try:
            return Tokenizer.from_pretrained(name)
        except Exception as exc:
            logger.error("tokenizer_unavailable", tokenizer=name, error=str(exc))
            raise ConfigurationError(
                message=f"Cannot load tokenizer '{name}' (CHUNK_TOKENIZER): {exc}",
                provider_name="tokenizers",
            ) from exc
