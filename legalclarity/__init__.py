"""Background analysis jobs, chunked summarization and caching for Legal Clarity."""

__version__ = "0.1.0"
