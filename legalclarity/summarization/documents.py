"""Combined document content format.

Uploaded documents are sent to the job queue as one string::

    Document: contract.pdf

    <text>

    ---

    Document: annex.docx

    <text>
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List

DOCUMENT_SEPARATOR = "\n\n---\n\n"
UNTITLED_DOCUMENT = "Document"

_DOCUMENT_HEADER = re.compile(r"^Document: (.+?)\n\n(.*)$", re.DOTALL)


@dataclass(frozen=True)
class DocumentSegment:
    name: str
    text: str


def parse_document_content(content: str) -> List[DocumentSegment]:
    """Split combined content into named document segments.

    Parts without a ``Document:`` header are skipped. Content that carries
    no header at all is treated as a single untitled document.
    """
    segments: List[DocumentSegment] = []
    for part in content.split(DOCUMENT_SEPARATOR):
        match = _DOCUMENT_HEADER.match(part)
        if match:
            segments.append(DocumentSegment(name=match.group(1).strip(), text=match.group(2).strip()))

    if not segments and content.strip() and not content.lstrip().startswith("Document:"):
        segments.append(DocumentSegment(name=UNTITLED_DOCUMENT, text=content.strip()))
    return segments


def format_document_content(documents: Iterable[DocumentSegment]) -> str:
    """Inverse of :func:`parse_document_content`."""
    return DOCUMENT_SEPARATOR.join(f"Document: {doc.name}\n\n{doc.text}" for doc in documents)
