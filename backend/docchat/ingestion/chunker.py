"""Page chunker - deterministic text splitting."""

import re

from backend.docchat.models.chunks import PageText, TextChunk

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
_PARAGRAPH_BOUNDARY = re.compile(r"\n\s*\n")


def _split_oversized(paragraph: str, max_chars: int) -> list[str]:
    """Split a paragraph longer than max_chars into sentence-packed pieces."""
    pieces: list[str] = []
    current = ""

    for sentence in _SENTENCE_BOUNDARY.split(paragraph):
        sentence = sentence.strip()
        if not sentence:
            continue

        # A single sentence over the limit is cut at fixed width
        while len(sentence) > max_chars:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(sentence[:max_chars])
            sentence = sentence[max_chars:].lstrip()

        if not sentence:
            continue
        if current and len(current) + 1 + len(sentence) > max_chars:
            pieces.append(current)
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence

    if current:
        pieces.append(current)
    return pieces


def chunk_text(text: str, *, max_chars: int = 1000) -> list[str]:
    """Chunk one page of text into segments of at most max_chars.

    Pure function. Paragraphs (blank-line separated) are packed together
    while they fit; an oversized paragraph is split on sentence boundaries.
    Whitespace-only input yields no chunks.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")

    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs = [p.strip() for p in _PARAGRAPH_BOUNDARY.split(normalized) if p.strip()]

    chunks: list[str] = []
    current = ""

    for paragraph in paragraphs:
        if len(paragraph) > max_chars:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(_split_oversized(paragraph, max_chars))
            continue

        # "\n\n" joins paragraphs inside a chunk
        if current and len(current) + 2 + len(paragraph) > max_chars:
            chunks.append(current)
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph

    if current:
        chunks.append(current)
    return chunks


def chunk_pages(pages: list[PageText], *, max_chars: int = 1000) -> list[TextChunk]:
    """Chunk a parsed document page by page.

    Chunks never span pages. Indices are 0-based and contiguous across the
    whole document, so re-chunking the same pages reproduces the same keys.
    """
    chunks: list[TextChunk] = []
    for page in sorted(pages, key=lambda p: p.page_number):
        for text in chunk_text(page.text, max_chars=max_chars):
            chunks.append(TextChunk(index=len(chunks), page_number=page.page_number, text=text))
    return chunks
