"""Sermon library search.

Module-level functions are pure business logic: tokenising, fuzzy matching,
relevance scoring, ranking and highlighting over SermonRecord collections.
``SearchEngine`` adds the one side effect, a bounded search history persisted
through BlobStorage.

Scoring, per query term and per weighted field:
  - exact substring:  occurrences × weight × 2
  - else fuzzy match: weight
  - field starts with the term: + weight (independent of the above)
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING

import structlog
from rapidfuzz.distance import OSA

from mountbuilder.models.search import SearchMatch, SearchOptions, SearchResult
from mountbuilder.storage import StorageError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from mountbuilder.models.search import SearchField, SearchFilters
    from mountbuilder.models.sermon import SermonRecord
    from mountbuilder.protocols import BlobStorage

log = structlog.get_logger()

FIELD_WEIGHTS: dict[SearchField, int] = {
    "title": 10,
    "verse_reference": 8,
    "series": 7,
    "speaker": 5,
    "notes": 3,
}
# Order in which matches are reported.
SEARCH_FIELDS: tuple[SearchField, ...] = ("title", "speaker", "series", "verse_reference", "notes")

FUZZY_THRESHOLD = 0.8
MIN_FUZZY_TERM_LENGTH = 3
HISTORY_KEY = "search_history"
DEFAULT_HISTORY_SIZE = 10
HIGHLIGHT_OPEN = '<mark class="search-highlight">'
HIGHLIGHT_CLOSE = "</mark>"


def tokenize(query: str) -> list[str]:
    return query.split()


def fuzzy_budget(term_length: int, threshold: float = FUZZY_THRESHOLD) -> int:
    """Edits allowed for a term: ``floor(length × (1 − threshold))``."""
    # The epsilon keeps 5 × (1 − 0.8) from flooring to 0 on binary floats.
    return int(term_length * (1 - threshold) + 1e-9)


def edit_distance(a: str, b: str, score_cutoff: int | None = None) -> int:
    """Case-insensitive edit distance; an adjacent swap counts as one edit."""
    return OSA.distance(a.lower(), b.lower(), score_cutoff=score_cutoff)


def fuzzy_match(term: str, target: str, threshold: float = FUZZY_THRESHOLD) -> bool:
    """Typo-tolerant containment check.

    Terms shorter than three characters never match fuzzily. Otherwise the
    term matches a whitespace-delimited word of ``target`` (at most two
    characters shorter than the term), or any term-length window of such a
    word, within ``fuzzy_budget`` edits.
    """
    term = term.lower()
    target = target.lower()

    if len(term) < MIN_FUZZY_TERM_LENGTH:
        return False
    if term in target:
        return True

    budget = fuzzy_budget(len(term), threshold)
    width = len(term)

    for word in target.split():
        if len(word) < width - 2:
            continue
        if edit_distance(term, word, score_cutoff=budget) <= budget:
            return True
        for start in range(len(word) - width + 1):
            if edit_distance(term, word[start : start + width], score_cutoff=budget) <= budget:
                return True

    return False


def _field_text(item: SermonRecord, field: SearchField) -> str:
    return getattr(item, field) or ""


def calculate_relevance(
    item: SermonRecord,
    terms: Sequence[str],
    *,
    fuzzy: bool = True,
    fields: Sequence[SearchField] | None = None,
    threshold: float = FUZZY_THRESHOLD,
) -> int:
    """Weighted relevance of ``item`` for ``terms``. Deterministic, never negative."""
    score = 0
    for raw_term in terms:
        term = raw_term.lower()
        for field in fields or SEARCH_FIELDS:
            weight = FIELD_WEIGHTS[field]
            text = _field_text(item, field).lower()

            if term in text:
                score += text.count(term) * weight * 2
            elif fuzzy and fuzzy_match(term, text, threshold):
                score += weight

            if text.startswith(term):
                score += weight

    return score


def find_matches(
    item: SermonRecord,
    terms: Sequence[str],
    *,
    fuzzy: bool = True,
    fields: Sequence[SearchField] | None = None,
    threshold: float = FUZZY_THRESHOLD,
) -> list[SearchMatch]:
    """Which (field, term) pairs matched, field by field, for highlighting."""
    matches: list[SearchMatch] = []
    for field in fields or SEARCH_FIELDS:
        text = _field_text(item, field).lower()
        for term in terms:
            if term.lower() in text:
                matches.append(SearchMatch(field=field, term=term, match_type="exact"))
            elif fuzzy and fuzzy_match(term, text, threshold):
                matches.append(SearchMatch(field=field, term=term, match_type="fuzzy"))
    return matches


def rank(
    collection: Iterable[SermonRecord],
    query: str,
    options: SearchOptions | None = None,
    *,
    threshold: float = FUZZY_THRESHOLD,
) -> list[SearchResult]:
    """Score and order ``collection`` for ``query``.

    An empty query returns every item with relevance 0 in input order.
    Otherwise only items scoring above ``min_relevance`` are kept, ordered by
    relevance descending; equal scores keep input order.
    """
    options = options or SearchOptions()
    terms = tokenize(query)

    if not terms:
        return [SearchResult(item=item, relevance=0, matches=[]) for item in collection]

    results = [
        SearchResult(
            item=item,
            relevance=calculate_relevance(
                item, terms, fuzzy=options.fuzzy, fields=options.fields, threshold=threshold
            ),
            matches=find_matches(
                item, terms, fuzzy=options.fuzzy, fields=options.fields, threshold=threshold
            ),
        )
        for item in collection
    ]
    kept = [result for result in results if result.relevance > options.min_relevance]
    return sorted(kept, key=lambda result: result.relevance, reverse=True)


def highlight(
    text: str,
    query: str,
    *,
    open_tag: str = HIGHLIGHT_OPEN,
    close_tag: str = HIGHLIGHT_CLOSE,
) -> str:
    """Wrap every case-insensitive occurrence of each query term.

    Terms are applied one after another over the whole text, so a later term
    may wrap text inside an earlier marker.
    """
    if not text or not query:
        return text

    result = text
    for term in tokenize(query):
        result = re.sub(
            re.escape(term),
            lambda match: f"{open_tag}{match.group(0)}{close_tag}",
            result,
            flags=re.IGNORECASE,
        )
    return result


def apply_filters(
    collection: Iterable[SermonRecord], filters: SearchFilters
) -> list[SermonRecord]:
    """Apply the non-text filters of an advanced search."""
    results = list(collection)

    if filters.speaker:
        results = [s for s in results if s.speaker == filters.speaker]
    if filters.series:
        results = [s for s in results if s.series == filters.series]
    if filters.date_from is not None:
        results = [s for s in results if s.date is not None and s.date >= filters.date_from]
    if filters.date_to is not None:
        results = [s for s in results if s.date is not None and s.date <= filters.date_to]
    if filters.has_verse is not None:
        results = [s for s in results if bool(s.verse_reference) == filters.has_verse]
    if filters.tags:
        results = [s for s in results if filters.tags <= s.tags]

    return results


def sort_records(records: list[SermonRecord], sort_by: str) -> list[SermonRecord]:
    """Sort by date or title. Undated sermons go last. ``relevance`` keeps order."""
    if sort_by in ("date-desc", "date-asc"):
        dated = [s for s in records if s.date is not None]
        undated = [s for s in records if s.date is None]
        dated.sort(key=lambda s: s.date, reverse=sort_by == "date-desc")  # type: ignore[arg-type, return-value]
        return dated + undated
    if sort_by == "title":
        return sorted(records, key=lambda s: s.title.casefold())
    return records


class SearchEngine:
    """Search with a persisted, bounded, most-recent-first query history."""

    def __init__(
        self,
        storage: BlobStorage,
        *,
        history_size: int = DEFAULT_HISTORY_SIZE,
        fuzzy_threshold: float = FUZZY_THRESHOLD,
    ) -> None:
        self._storage = storage
        self.history_size = history_size
        self.fuzzy_threshold = fuzzy_threshold
        self._history: list[str] = []

    @property
    def history(self) -> list[str]:
        return list(self._history)

    async def load_history(self) -> None:
        try:
            raw = await self._storage.read_blob(HISTORY_KEY)
        except StorageError:
            log.warning("search_history_load_error", exc_info=True)
            return
        if not raw:
            return
        try:
            saved = json.loads(raw)
        except ValueError:
            log.warning("search_history_corrupt", exc_info=True)
            return
        if isinstance(saved, list):
            self._history = [q for q in saved if isinstance(q, str)][: self.history_size]

    async def search(
        self,
        collection: Iterable[SermonRecord],
        query: str,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Rank ``collection`` and record non-empty queries in the history."""
        if query.strip():
            await self._record(query)
        results = rank(collection, query, options, threshold=self.fuzzy_threshold)
        log.info("search_complete", query=query, result_count=len(results))
        return results

    async def advanced_search(
        self, collection: Iterable[SermonRecord], filters: SearchFilters
    ) -> list[SermonRecord]:
        """Filter, then either rank by ``filters.query`` or sort by ``filters.sort_by``."""
        records = apply_filters(collection, filters)
        if filters.query.strip():
            return [result.item for result in await self.search(records, filters.query)]
        return sort_records(records, filters.sort_by)

    def suggestions(
        self, collection: Iterable[SermonRecord], query: str, limit: int = 5
    ) -> list[str]:
        """Completion candidates: speakers, series and title words.

        Queries shorter than two characters get the recent history instead.
        """
        if len(query) < 2:
            return self._history[:limit]

        lowered = query.lower()
        found: dict[str, None] = {}
        for sermon in collection:
            if sermon.speaker and lowered in sermon.speaker.lower():
                found.setdefault(sermon.speaker)
            if sermon.series and lowered in sermon.series.lower():
                found.setdefault(sermon.series)
            for word in sermon.title.split():
                if len(word) > 2 and word.lower().startswith(lowered):
                    found.setdefault(word)
        return list(found)[:limit]

    async def clear_history(self) -> None:
        self._history = []
        try:
            await self._storage.remove_blob(HISTORY_KEY)
        except StorageError:
            log.warning("search_history_clear_error", exc_info=True)

    async def _record(self, query: str) -> None:
        trimmed = query.strip()
        self._history = [trimmed, *(q for q in self._history if q != trimmed)]
        del self._history[self.history_size :]
        try:
            await self._storage.write_blob(HISTORY_KEY, json.dumps(self._history))
        except StorageError:
            log.warning("search_history_save_error", exc_info=True)
