"""
Fuzzy filtering for vault and secret names.

A candidate matches when every character of the query appears in it,
in order, ignoring case. Matches are ranked by a small heuristic that
rewards contiguous runs and matches at word boundaries, and penalises
gaps. The functions here are pure: identical inputs always give
identical outputs, so they are safe to call on every keystroke.
"""

from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")

MATCH_SCORE = 16
CONSECUTIVE_BONUS = 24
BOUNDARY_BONUS = 20
PREFIX_BONUS = 12
MAX_GAP_PENALTY = 8

_SEPARATORS = frozenset("-_./: ")


def fuzzy_score(query: str, candidate: str) -> int:
    """
    Score ``candidate`` against ``query``.

    Args:
        query: Non-empty search string.
        candidate: String to rank.

    Returns:
        0 when the query is not a subsequence of the candidate,
        otherwise a positive score (higher is better).
    """
    if not query:
        return 0

    q = query.lower()
    c = candidate.lower()

    best = 0
    start = c.find(q[0])
    while start != -1:
        best = max(best, _score_from(q, c, start))
        start = c.find(q[0], start + 1)
    return best


def _score_from(q: str, c: str, start: int) -> int:
    """Greedy left-to-right alignment with the first query char pinned at ``start``."""
    total = 0
    prev = -1
    pos = start

    for i, ch in enumerate(q):
        if i > 0:
            pos = c.find(ch, prev + 1)
            if pos == -1:
                return 0

        points = MATCH_SCORE
        if prev != -1:
            if pos == prev + 1:
                points += CONSECUTIVE_BONUS
            else:
                points -= min(pos - prev - 1, MAX_GAP_PENALTY)
        if pos == 0:
            points += PREFIX_BONUS + BOUNDARY_BONUS
        elif c[pos - 1] in _SEPARATORS:
            points += BOUNDARY_BONUS

        total += points
        prev = pos

    # every match must rank above "no match"
    return max(total, 1)


def fuzzy_filter(
    query: str,
    candidates: Iterable[T],
    key: Callable[[T], str] | None = None,
) -> list[T]:
    """
    Filter and rank candidates against a query.

    Args:
        query: Search string. Empty returns all candidates unchanged.
        candidates: Items to filter, in their original order.
        key: Extracts the string to match from each item. Defaults to
            the item itself.

    Returns:
        Matching candidates ordered by descending score; ties keep
        their original relative order.
    """
    items = list(candidates)
    if not query:
        return items

    get_text = key or (lambda item: item)  # type: ignore[assignment,return-value]

    scored = []
    for item in items:
        score = fuzzy_score(query, get_text(item))
        if score > 0:
            scored.append((score, item))

    # list.sort is stable, so equal scores stay in original order
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [item for _, item in scored]
