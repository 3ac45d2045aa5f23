"""
Inverted-index search over uploaded exam documents.

The index maps a term to the set of corpus positions containing it. It holds
no reference to the corpus itself: positions are only meaningful against the
exact sequence passed to build(), so callers rebuild after every corpus
change and pass that same sequence to search().
"""

import logging
import re
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Union

from configs import SUGGESTION_LIMIT
from examnotebook.models import AvailableFilters, Document, SearchFilters, as_utc

logger = logging.getLogger(__name__)

MIN_TERM_LENGTH = 3

SUBJECT_NAMES = {
    "toanHoc": "Toán cao cấp",
    "vanHoc": "Văn học đại cương",
    "tiengAnh": "Tiếng Anh đại học",
    "vatLy": "Vật lý đại cương",
}

HIGHLIGHT_TEMPLATE = r"<mark>\g<0></mark>"


def tokenize(text: str) -> List[str]:
    """Whitespace-split, lower-cased tokens of at least MIN_TERM_LENGTH chars."""
    return [word for word in text.lower().split() if len(word) >= MIN_TERM_LENGTH]


def subject_name(code: str) -> str:
    """Display name for a subject code; unknown codes map to themselves."""
    return SUBJECT_NAMES.get(code, code)


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def _year_key(year: Union[int, str]):
    try:
        return (1, int(year), "")
    except (TypeError, ValueError):
        return (0, 0, str(year))


class SearchIndex:
    """Term -> positions index with compound text and attribute queries."""

    def __init__(self):
        self._index: Dict[str, Set[int]] = {}
        self._lock = threading.RLock()

    @property
    def term_count(self) -> int:
        return len(self._index)

    def positions(self, term: str) -> Set[int]:
        """Corpus positions indexed under term."""
        return set(self._index.get(term.lower(), ()))

    # --------------------------------------------------------
    # Indexing
    # --------------------------------------------------------

    def build(self, documents: Sequence[Document]) -> None:
        """
        Replace the index with one built from documents.

        Indexes name, content, subject and every scalar value under
        metadata.examInfo. The new mapping is built aside and swapped in,
        so concurrent readers see either the old or the new index.
        """
        index: Dict[str, Set[int]] = {}

        for position, document in enumerate(documents):
            for text in self._indexed_fields(document):
                for term in tokenize(text):
                    index.setdefault(term, set()).add(position)

        with self._lock:
            self._index = index

        logger.info("Indexed %d document(s), %d term(s)", len(documents), len(index))

    @staticmethod
    def _indexed_fields(document: Document) -> Iterable[str]:
        yield document.name
        if document.content:
            yield document.content
        if document.subject:
            yield document.subject
        for value in document.exam_info.values():
            if value and _is_scalar(value):
                yield str(value)

    # --------------------------------------------------------
    # Querying
    # --------------------------------------------------------

    def search(
        self,
        query: str = "",
        filters: Optional[SearchFilters] = None,
        documents: Sequence[Document] = ()
    ) -> List[Document]:
        """
        Resolve a text query plus attribute filters against documents.

        An empty query with no filters returns documents unchanged. Results
        are in corpus order.
        """
        filters = filters or SearchFilters()
        query = query or ""

        if not query and filters.is_empty():
            return documents

        if query.strip():
            matches = self._match_text(query.lower().split(), documents)
        else:
            matches = set(range(len(documents)))

        if filters.subject:
            matches = {i for i in matches if self._doc(documents, i, "subject") == filters.subject}

        if filters.date_range:
            matches = self._filter_by_date_range(matches, filters, documents)

        if filters.file_type:
            matches = {i for i in matches if self._doc(documents, i, "type") == filters.file_type}

        if filters.exam_type:
            matches = {
                i for i in matches
                if i < len(documents) and documents[i].exam_info.get("examType") == filters.exam_type
            }

        return [documents[i] for i in sorted(matches) if i < len(documents)]

    def _match_text(self, terms: List[str], documents: Sequence[Document]) -> Set[int]:
        with self._lock:
            index = self._index

        matches: Set[int] = set()
        for term in terms:
            matches.update(index.get(term, ()))

        # Substring pass catches terms inside longer tokens
        for position, document in enumerate(documents):
            text = f"{document.name} {document.content or ''} {document.subject or ''}".lower()
            if all(term in text for term in terms):
                matches.add(position)

        return matches

    @staticmethod
    def _doc(documents: Sequence[Document], position: int, attribute: str):
        if position >= len(documents):
            return None
        return getattr(documents[position], attribute)

    @staticmethod
    def _filter_by_date_range(matches: Set[int], filters: SearchFilters, documents: Sequence[Document]) -> Set[int]:
        start = as_utc(filters.date_range.start) if filters.date_range.start else None
        end = as_utc(filters.date_range.end) if filters.date_range.end else None

        kept = set()
        for position in matches:
            if position >= len(documents) or documents[position].upload_date is None:
                continue
            uploaded = as_utc(documents[position].upload_date)
            if (start is None or uploaded >= start) and (end is None or uploaded <= end):
                kept.add(position)
        return kept

    # --------------------------------------------------------
    # Suggestions, highlighting, filter options
    # --------------------------------------------------------

    def suggestions(self, partial_query: str, documents: Sequence[Document], limit: int = SUGGESTION_LIMIT) -> List[str]:
        """
        Autocomplete entries for a partial query.

        Collects matching file names, then display names of matching
        subjects, then matching exam types, all drawn from documents.
        """
        if not partial_query or len(partial_query) < 2:
            return []

        needle = partial_query.lower()
        found: Dict[str, None] = {}

        for document in documents:
            if needle in document.name.lower():
                found.setdefault(document.name)

        options = self.available_filters(documents)
        for code in options.subjects:
            name = subject_name(code)
            if needle in code.lower() or needle in name.lower():
                found.setdefault(name)

        for exam_type in options.exam_types:
            if needle in exam_type.lower():
                found.setdefault(exam_type)

        return list(found)[:limit]

    @staticmethod
    def highlight(text: str, query: str) -> str:
        """
        Wrap every occurrence of each query term in <mark> tags.

        Terms are applied one after another to the already marked-up text,
        so a later term can also match inside earlier markup.
        """
        if not text or not query:
            return text

        highlighted = text
        for term in query.split():
            highlighted = re.sub(re.escape(term), HIGHLIGHT_TEMPLATE, highlighted, flags=re.IGNORECASE)
        return highlighted

    @staticmethod
    def available_filters(documents: Sequence[Document]) -> AvailableFilters:
        """Distinct subjects, file types, exam types and years (newest first)."""
        subjects: Dict[str, None] = {}
        file_types: Dict[str, None] = {}
        exam_types: Dict[str, None] = {}
        years: Dict[Union[int, str], None] = {}

        for document in documents:
            if document.subject:
                subjects.setdefault(document.subject)
            if document.type:
                file_types.setdefault(document.type)
            exam_info = document.exam_info
            if exam_info.get("examType"):
                exam_types.setdefault(str(exam_info["examType"]))
            if exam_info.get("year") and _is_scalar(exam_info["year"]):
                years.setdefault(exam_info["year"])

        return AvailableFilters(
            subjects=list(subjects),
            file_types=list(file_types),
            exam_types=list(exam_types),
            years=sorted(years, key=_year_key, reverse=True),
        )
