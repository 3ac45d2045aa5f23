"""Local document search."""
from .index import SearchIndex, subject_name, tokenize, SUBJECT_NAMES
from .history import SearchHistory

__all__ = [
    "SearchIndex",
    "SearchHistory",
    "subject_name",
    "tokenize",
    "SUBJECT_NAMES",
]
