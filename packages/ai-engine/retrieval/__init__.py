"""Semantic retrieval over generated project files."""

from .file_index import (
    FileIndex,
    FileSearchResult,
    should_embed,
    detect_file_type,
    detect_language,
    prepare_file_text,
)

__all__ = [
    "FileIndex",
    "FileSearchResult",
    "should_embed",
    "detect_file_type",
    "detect_language",
    "prepare_file_text",
]
