"""Recent search queries, most recent first, persisted as a JSON list."""

import json
import logging
from pathlib import Path
from typing import List

from configs import SEARCH_HISTORY_LIMIT, SEARCH_HISTORY_PATH

logger = logging.getLogger(__name__)


class SearchHistory:

    def __init__(self, path: str = SEARCH_HISTORY_PATH, limit: int = SEARCH_HISTORY_LIMIT):
        self.path = Path(path)
        self.limit = limit

    def entries(self) -> List[str]:
        if not self.path.exists():
            return []
        try:
            history = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as e:
            logger.warning("Ignoring unreadable search history %s: %s", self.path, e)
            return []
        return [entry for entry in history if isinstance(entry, str)] if isinstance(history, list) else []

    def save(self, query: str) -> None:
        """Move query to the front, dropping duplicates and old entries."""
        if not query or not query.strip():
            return

        trimmed = query.strip()
        history = [entry for entry in self.entries() if entry != trimmed]
        history.insert(0, trimmed)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(history[:self.limit], ensure_ascii=False), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
