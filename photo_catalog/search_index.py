"""
Full-text search over photo descriptions.

Searching is done in two tiers. A case-insensitive substring scan over the
catalog runs first; the SQLite FTS5 index is only consulted when the scan finds
nothing. The substring tier never misses a description that literally contains
the term, whatever the tokenizer does with it.
"""

import sqlite3
from typing import List, Optional, Tuple

from .models import SearchHit
from .logging_setup import get_logger

logger = get_logger(__name__)

FTS_TABLE = "photos_fts"
HIGHLIGHT_OPEN = "<mark>"
HIGHLIGHT_CLOSE = "</mark>"
SNIPPET_ELLIPSIS = "..."
SNIPPET_TOKENS = 32

CREATE_FTS_SQL = f"CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(description)"


def upsert_index_entry(cursor: sqlite3.Cursor, photo_id: int, text: Optional[str]) -> None:
    """
    Replace the index entry of a photo inside the caller's transaction.

    Blank text removes the entry, so the index only ever holds photos with a
    non-empty description.

    Args:
        cursor: Cursor of an open transaction
        photo_id: Photo id, used as the FTS rowid
        text: Current description of the photo
    """
    cursor.execute(f"DELETE FROM {FTS_TABLE} WHERE rowid = ?", (photo_id,))
    if text and text.strip():
        cursor.execute(
            f"INSERT INTO {FTS_TABLE} (rowid, description) VALUES (?, ?)",
            (photo_id, text)
        )


def find_term_spans(text: str, term: str) -> List[Tuple[int, int]]:
    """
    Find the non-overlapping occurrences of term in text, ignoring case.

    Both strings are compared after Unicode case folding, so "STRASSE" finds
    "Straße". Spans are (start, end) offsets into the original text; a folded
    match that covers part of a character covers the whole character.
    """
    if not text or not term:
        return []
    needle = term.casefold()
    if not needle:
        return []

    folded_parts = []
    offsets = []
    for index, char in enumerate(text):
        folded = char.casefold()
        folded_parts.append(folded)
        offsets.extend([index] * len(folded))
    folded_text = "".join(folded_parts)

    spans = []
    position = folded_text.find(needle)
    while position != -1:
        start = offsets[position]
        end = offsets[position + len(needle) - 1] + 1
        if not spans or start >= spans[-1][1]:
            spans.append((start, end))
        position = folded_text.find(needle, position + len(needle))
    return spans


def highlight_term(text: str, term: str) -> str:
    """
    Wrap every case-insensitive occurrence of term in highlight markers.

    The matched text keeps its original casing.
    """
    if not text or not term:
        return text or ""
    parts = []
    last = 0
    for start, end in find_term_spans(text, term):
        parts.append(text[last:start])
        parts.append(f"{HIGHLIGHT_OPEN}{text[start:end]}{HIGHLIGHT_CLOSE}")
        last = end
    parts.append(text[last:])
    return "".join(parts)


def build_match_query(term: str) -> str:
    """
    Turn free text into an FTS5 MATCH expression.

    Each whitespace-separated token is quoted as a phrase so that FTS5 operators
    and punctuation in user input are matched literally.
    """
    tokens = term.split()
    return " ".join('"' + token.replace('"', '""') + '"' for token in tokens)


class SearchIndex:
    """Two-tier description search backed by a catalog database."""

    def __init__(self, catalog):
        """
        Initialize the search index.

        Args:
            catalog: CatalogDatabase holding the photos and the FTS table
        """
        self.catalog = catalog

    def upsert(self, photo_id: int, text: Optional[str]) -> None:
        """Replace the index entry for a photo in its own transaction."""
        with self.catalog.cursor(immediate=True) as cursor:
            upsert_index_entry(cursor, photo_id, text)

    def query(self, term: Optional[str]) -> List[SearchHit]:
        """
        Search photo descriptions.

        Args:
            term: Search text; blank returns the whole catalog

        Returns:
            Matching photos with the term highlighted
        """
        if term is None or not term.strip():
            return [
                SearchHit(photo=photo, highlighted=photo.description_ai or "")
                for photo in self.catalog.list_photos()
            ]

        term = term.strip()
        hits = self._substring_search(term)
        if hits:
            logger.debug(f"Substring search for '{term}' matched {len(hits)} photos")
            return hits

        hits = self._fts_search(term)
        logger.debug(f"Full-text search for '{term}' matched {len(hits)} photos")
        return hits

    def _substring_search(self, term: str) -> List[SearchHit]:
        hits = []
        for photo in self.catalog.list_photos():
            if find_term_spans(photo.description_ai, term):
                hits.append(SearchHit(photo=photo, highlighted=highlight_term(photo.description_ai, term)))
        return hits

    def _fts_search(self, term: str) -> List[SearchHit]:
        match_query = build_match_query(term)
        if not match_query:
            return []

        try:
            with self.catalog.cursor() as cursor:
                cursor.execute(f"""
                    SELECT rowid,
                           snippet({FTS_TABLE}, 0, ?, ?, ?, ?) AS highlighted
                    FROM {FTS_TABLE}
                    WHERE {FTS_TABLE} MATCH ?
                    ORDER BY rank
                """, (HIGHLIGHT_OPEN, HIGHLIGHT_CLOSE, SNIPPET_ELLIPSIS, SNIPPET_TOKENS, match_query))
                matches = [(row[0], row[1]) for row in cursor.fetchall()]
        except sqlite3.OperationalError as e:
            logger.warning(f"Full-text query failed for '{term}': {str(e)}")
            return []

        hits = []
        for photo_id, highlighted in matches:
            photo = self.catalog.get(photo_id)
            if photo is None:
                logger.warning(f"Index entry without catalog row: {photo_id}")
                continue
            hits.append(SearchHit(photo=photo, highlighted=highlighted))
        return hits
