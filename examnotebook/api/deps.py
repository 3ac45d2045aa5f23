"""
Shared dependencies for the ExamNotebook API.

Provides:
- Structured logging
- Singleton key ring (created once, reused per request) and its lock
- The document corpus and the search index built over it
- Configuration constants for API behavior
"""

import logging
import threading
from typing import List, Optional

from configs import LOG_LEVEL, REQUEST_TIMEOUT_SECONDS, SEARCH_HISTORY_PATH
from examnotebook.llm import KeyRing
from examnotebook.models import Document
from examnotebook.search import SearchHistory, SearchIndex
from examnotebook.store import DocumentStore, KeyRingStore


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

def setup_logging() -> logging.Logger:
    """Configure structured logging for the API."""
    logger = logging.getLogger("examnotebook")

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    # Request URLs carry the API key as a query parameter
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger


logger = setup_logging()


# =============================================================================
# CONFIGURATION
# =============================================================================

# Chat requests wait at most this long for the key ring (all attempts included)
CHAT_TIMEOUT_SECONDS = REQUEST_TIMEOUT_SECONDS * 2


# =============================================================================
# SINGLETON KEY RING
# =============================================================================

keyring_store = KeyRingStore()

# One in-flight send() per ring; rotation state is not safe to interleave
keyring_lock = threading.Lock()

_keyring: Optional[KeyRing] = None


def get_keyring() -> KeyRing:
    """Get or load the singleton key ring."""
    global _keyring
    if _keyring is None:
        _keyring = keyring_store.load()
    return _keyring


def set_keyring(ring: Optional[KeyRing]) -> None:
    """Replace the key ring (None forces a reload on next use)."""
    global _keyring
    _keyring = ring


def save_keyring() -> None:
    keyring_store.save(get_keyring())


def send_serialized(prompt: str, context: str = "", document: Optional[Document] = None):
    """Run one send() while holding the key ring lock, then persist where rotation ended."""
    with keyring_lock:
        ring = get_keyring()
        result = ring.send_with_context(prompt, document, context)
        keyring_store.save(ring)
        return result


# =============================================================================
# DOCUMENTS AND SEARCH
# =============================================================================

document_store = DocumentStore()
search_index = SearchIndex()

# Held while the corpus and index are swapped or read together
corpus_lock = threading.Lock()

_documents: List[Document] = []
_search_history: Optional[SearchHistory] = None


def get_documents() -> List[Document]:
    return _documents


def set_documents(documents: List[Document], persist: bool = True) -> None:
    """Replace the corpus and rebuild the index over it."""
    global _documents
    corpus = list(documents)
    with corpus_lock:
        search_index.build(corpus)
        _documents = corpus
    if persist:
        document_store.save(corpus)


def load_documents() -> None:
    set_documents(document_store.load(), persist=False)


def get_search_history() -> SearchHistory:
    global _search_history
    if _search_history is None:
        _search_history = SearchHistory(SEARCH_HISTORY_PATH)
    return _search_history


def set_search_history(history: Optional[SearchHistory]) -> None:
    global _search_history
    _search_history = history
