"""In-memory full-text search over parsed documentation."""

import logging
import re
from bisect import bisect_left
from collections import defaultdict
from collections.abc import Iterable

from mdx_docs.models import Document, Heading, SearchEntry, SearchResult
from mdx_docs.visitors import TextContentVisitor

logger = logging.getLogger(__name__)

HEADING_WEIGHT = 3.0
TITLE_WEIGHT = 2.0
BODY_WEIGHT = 1.0
PREFIX_FACTOR = 0.5
EXCERPT_CHARS = 160

_WORD = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    """Split text into lowercase words with punctuation removed.

    Args:
        text: Text to tokenize.

    Returns:
        Tokens in order of appearance.
    """
    return _WORD.findall(text.lower())


def make_excerpt(text: str, limit: int = EXCERPT_CHARS) -> str:
    """Shorten text to a preview, cutting at a word boundary.

    Args:
        text: Full section text.
        limit: Maximum number of characters before the ellipsis.

    Returns:
        Excerpt text.
    """
    if len(text) <= limit:
        return text
    cut = text.rfind(" ", 0, limit)
    return text[: cut if cut > 0 else limit].rstrip() + "..."


class _SectionCollector(TextContentVisitor):
    """Flattens a document into headings interleaved with text runs."""

    def __init__(self) -> None:
        super().__init__()
        self.items: list[Heading | str] = []

    def visit_heading(self, node: Heading) -> None:
        self._flush()
        self.items.append(node)

    def _flush(self) -> None:
        text = self.get_text()
        if text:
            self.items.append(text)
        self._text_parts.clear()

    def collect(self, document: Document) -> list[Heading | str]:
        self.walk(document.body)
        self._flush()
        return self.items


class SearchIndexer:
    """Builds a SearchIndex from parsed documents."""

    def build(self, documents: Iterable[Document]) -> "SearchIndex":
        """Create one search entry per heading-delimited section.

        Args:
            documents: Documents in the order results should tie-break.

        Returns:
            Immutable SearchIndex.
        """
        entries: list[SearchEntry] = []
        document_count = 0
        for document in documents:
            document_count += 1
            entries.extend(self._sections(document))
        logger.info("Built search index with %d entries from %d documents", len(entries), document_count)
        return SearchIndex(entries)

    def _sections(self, document: Document) -> list[SearchEntry]:
        items = _SectionCollector().collect(document)
        title_tokens = frozenset(tokenize(document.title))
        headings = [(index, item) for index, item in enumerate(items) if isinstance(item, Heading)]

        entries: list[SearchEntry] = []
        preamble_end = headings[0][0] if headings else len(items)
        preamble = " ".join(item for item in items[:preamble_end] if isinstance(item, str))
        if preamble or not headings:
            entries.append(self._entry(document, document.title, None, preamble, title_tokens))

        for position, (index, heading) in enumerate(headings):
            # A section runs until the next heading of equal or higher level.
            end = next(
                (other for other, next_heading in headings[position + 1 :] if next_heading.level <= heading.level),
                len(items),
            )
            body = " ".join(item if isinstance(item, str) else item.text for item in items[index + 1 : end])
            entries.append(self._entry(document, heading.text, heading.id, body, title_tokens))
        return entries

    def _entry(
        self,
        document: Document,
        heading: str,
        anchor: str | None,
        body: str,
        title_tokens: frozenset[str],
    ) -> SearchEntry:
        heading_tokens = frozenset(tokenize(heading))
        body_tokens = frozenset(tokenize(body))
        return SearchEntry(
            path=document.path,
            title=document.title,
            heading=heading,
            anchor=anchor,
            excerpt=make_excerpt(body),
            tokens=heading_tokens | title_tokens | body_tokens,
            heading_tokens=heading_tokens,
            title_tokens=title_tokens,
            body_tokens=body_tokens,
        )


class SearchIndex:
    """Ranked inverted index over search entries.

    Read-only after construction, so it is safe to share between readers.
    """

    def __init__(self, entries: Iterable[SearchEntry] = ()) -> None:
        """Initialise the index.

        Args:
            entries: Entries in build order.
        """
        self._entries = tuple(entries)
        postings: defaultdict[str, list[int]] = defaultdict(list)
        for entry_id, entry in enumerate(self._entries):
            for token in entry.tokens:
                postings[token].append(entry_id)
        self._postings = {token: tuple(ids) for token, ids in postings.items()}
        self._vocabulary = sorted(self._postings)

    @property
    def entries(self) -> tuple[SearchEntry, ...]:
        """All entries in build order."""
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def query(self, text: str, limit: int | None = None) -> tuple[SearchEntry, ...]:
        """Search for entries matching the query.

        Args:
            text: Query text.
            limit: Maximum number of results.

        Returns:
            Matching entries, best first.
        """
        return tuple(result.entry for result in self.query_scored(text, limit))

    def query_scored(self, text: str, limit: int | None = None) -> tuple[SearchResult, ...]:
        """Search for entries and keep their scores.

        Each distinct query token adds the weight of the best field it matches
        (heading, then title, then body). The final token may also match as a
        prefix at reduced weight. Ties keep build order.

        Args:
            text: Query text.
            limit: Maximum number of results.

        Returns:
            Scored results, best first. Empty when the query has no words.
        """
        tokens = tokenize(text)
        if not tokens:
            return ()

        scores: defaultdict[int, float] = defaultdict(float)
        for term in dict.fromkeys(tokens):
            for entry_id in self._postings.get(term, ()):
                scores[entry_id] += self._weight(self._entries[entry_id], term)

        last = tokens[-1]
        exact = set(self._postings.get(last, ()))
        prefix_scores: dict[int, float] = {}
        for term in self._prefix_terms(last):
            for entry_id in self._postings[term]:
                if entry_id in exact:
                    continue
                weight = self._weight(self._entries[entry_id], term) * PREFIX_FACTOR
                prefix_scores[entry_id] = max(weight, prefix_scores.get(entry_id, 0.0))
        for entry_id, weight in prefix_scores.items():
            scores[entry_id] += weight

        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
        if limit is not None:
            ranked = ranked[:limit]
        return tuple(SearchResult(entry=self._entries[entry_id], score=score) for entry_id, score in ranked)

    def _prefix_terms(self, prefix: str) -> list[str]:
        start = bisect_left(self._vocabulary, prefix)
        terms = []
        for term in self._vocabulary[start:]:
            if not term.startswith(prefix):
                break
            if term != prefix:
                terms.append(term)
        return terms

    @staticmethod
    def _weight(entry: SearchEntry, term: str) -> float:
        if term in entry.heading_tokens:
            return HEADING_WEIGHT
        if term in entry.title_tokens:
            return TITLE_WEIGHT
        if term in entry.body_tokens:
            return BODY_WEIGHT
        return 0.0
