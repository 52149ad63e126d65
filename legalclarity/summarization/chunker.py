"""Paragraph-aligned document chunking for summary generation."""
from __future__ import annotations

import logging
import re
from typing import Iterator

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 12000

# Two or more consecutive newlines separate paragraphs
PARAGRAPH_BREAK = re.compile(r"(\n{2,})")


def chunk_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> Iterator[str]:
    """Yield bounded, paragraph-aligned chunks of ``text`` in order.

    Paragraphs are accumulated greedily until the next one would push the
    running chunk past ``max_chars``. A paragraph that is longer than
    ``max_chars`` on its own is yielded as an oversized chunk rather than
    being split. Separators inside a chunk are kept verbatim.

    Args:
        text: Document text to chunk
        max_chars: Maximum characters per chunk

    Yields:
        Chunks in document order
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be > 0")

    if len(text) <= max_chars:
        yield text
        return

    parts = PARAGRAPH_BREAK.split(text)
    current = parts[0]
    emitted = 0

    for idx in range(1, len(parts), 2):
        separator, paragraph = parts[idx], parts[idx + 1]
        if current and len(current) + len(separator) + len(paragraph) > max_chars:
            emitted += 1
            yield current
            current = paragraph
        else:
            current = f"{current}{separator}{paragraph}"

    if current:
        emitted += 1
        yield current

    logger.debug("Segmented document", extra={"chunk_count": emitted, "max_chars": max_chars})


class DocumentChunker:
    """Chunks document text for processing by the analysis service."""

    def __init__(self, max_chars: int = DEFAULT_MAX_CHARS):
        if max_chars <= 0:
            raise ValueError("max_chars must be > 0")
        self.max_chars = max_chars

    def chunk(self, text: str) -> Iterator[str]:
        return chunk_text(text, self.max_chars)
