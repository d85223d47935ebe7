"""Portable full-text fallback used when the database has no native text search.

PostgreSQL ranks and highlights with ``ts_rank`` / ``ts_headline``; on other
backends the repository narrows candidates with LIKE and these helpers compute
a term-frequency rank and a highlighted snippet in Python.
"""

import re

HIGHLIGHT_START = "<mark>"
HIGHLIGHT_STOP = "</mark>"
HEADLINE_MAX_WORDS = 35

# Field weights mirror the A/B/C weighting applied to title/path/body on PostgreSQL.
TITLE_WEIGHT = 1.0
PATH_WEIGHT = 0.4
BODY_WEIGHT = 0.2


def query_terms(query: str) -> list[str]:
    """Split a free-text query into lowercase terms, dropping duplicates."""
    terms: list[str] = []
    for term in re.findall(r"\w+", query.lower()):
        if term not in terms:
            terms.append(term)
    return terms


def rank(terms: list[str], title: str, path: str, body: str) -> float:
    """Weighted occurrence count of ``terms`` across a document's fields."""
    title, path, body = title.lower(), path.lower(), body.lower()
    score = 0.0
    for term in terms:
        score += TITLE_WEIGHT * title.count(term)
        score += PATH_WEIGHT * path.count(term)
        score += BODY_WEIGHT * body.count(term)
    return score


def headline(body: str, terms: list[str], max_words: int = HEADLINE_MAX_WORDS) -> str:
    """Return a window of ``body`` around the first match with every match marked."""
    words = body.split()
    if not words:
        return ""

    pattern = _terms_pattern(terms)
    start = 0
    if pattern is not None:
        for index, word in enumerate(words):
            if pattern.search(word):
                start = max(0, index - max_words // 3)
                break

    snippet = " ".join(words[start:start + max_words])
    if pattern is None:
        return snippet
    return pattern.sub(lambda m: f"{HIGHLIGHT_START}{m.group(0)}{HIGHLIGHT_STOP}", snippet)


def _terms_pattern(terms: list[str]) -> re.Pattern | None:
    if not terms:
        return None
    alternation = "|".join(re.escape(term) for term in sorted(terms, key=len, reverse=True))
    return re.compile(alternation, re.IGNORECASE)
