"""
JSON-file persistence for the key ring configuration and the document corpus.

Records are plain JSON so the files can be produced or edited by hand.
There are no transactional guarantees beyond replacing the file in one
rename.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from configs import DOCUMENTS_PATH, FALLBACK_ENABLED, KEYRING_STATE_PATH
from examnotebook.llm.keyring import KeyRing
from examnotebook.llm.transport import Transport
from examnotebook.models import Document

logger = logging.getLogger(__name__)

_documents_adapter = TypeAdapter(List[Document])


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    os.replace(tmp_path, path)


class KeyRingState(BaseModel):
    """Persisted key ring configuration."""
    keys: List[str] = Field(default_factory=list)
    current_index: int = 0
    fallback_enabled: bool = FALLBACK_ENABLED


class KeyRingStore:
    """Loads and saves the ordered key list and the selected index."""

    def __init__(self, path: str = KEYRING_STATE_PATH):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self, transport: Optional[Transport] = None) -> KeyRing:
        """
        Load the saved ring, or build one from environment keys when no
        state file exists yet.
        """
        if not self.path.exists():
            logger.info("No key ring state at %s, using environment keys", self.path)
            return KeyRing.from_settings(transport=transport)

        state = KeyRingState.model_validate_json(self.path.read_text(encoding="utf-8"))
        logger.info("Loaded %d key(s) from %s", len(state.keys), self.path)
        return KeyRing(
            keys=state.keys,
            transport=transport,
            fallback_enabled=state.fallback_enabled,
            current_index=state.current_index,
        )

    def save(self, ring: KeyRing) -> None:
        state = KeyRingState(
            keys=[slot.key for slot in ring.slots],
            current_index=ring.current_index,
            fallback_enabled=ring.fallback_enabled,
        )
        _write_atomic(self.path, state.model_dump_json(indent=2))


class DocumentStore:
    """Loads and saves the document corpus produced by file ingestion."""

    def __init__(self, path: str = DOCUMENTS_PATH):
        self.path = Path(path)

    def load(self) -> List[Document]:
        if not self.path.exists():
            return []
        try:
            return _documents_adapter.validate_json(self.path.read_bytes())
        except ValidationError as e:
            logger.warning("Ignoring unreadable documents file %s: %s", self.path, e)
            return []

    def save(self, documents: List[Document]) -> None:
        payload = _documents_adapter.dump_json(documents, by_alias=True, exclude_none=True, indent=2)
        _write_atomic(self.path, payload.decode("utf-8"))
