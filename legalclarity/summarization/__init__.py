from .chunker import DEFAULT_MAX_CHARS, DocumentChunker, chunk_text
from .documents import DocumentSegment, format_document_content, parse_document_content
from .pipeline import DocumentState, DocumentSummary, SummarizationPipeline

__all__ = [
    "DEFAULT_MAX_CHARS",
    "DocumentChunker",
    "DocumentSegment",
    "DocumentState",
    "DocumentSummary",
    "SummarizationPipeline",
    "chunk_text",
    "format_document_content",
    "parse_document_content",
]
