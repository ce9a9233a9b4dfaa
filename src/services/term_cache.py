"""Word-overlap scoring over durable footage and media library entries.

Entries are matched by token containment against their stored terms rather
than exact match, so compound or partial search phrases ("forest dawn",
"walking") still find clips stored under "misty forest" or "people walking".
"""

import logging
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, Sequence, TypeVar

from models.generation import Orientation

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LIMIT = 5
MIN_TOKEN_LENGTH = 3


def significant_tokens(query: str) -> List[str]:
    """Lowercase the query, split on whitespace and drop tokens of 2 chars or fewer."""
    return [token for token in query.lower().split() if len(token) >= MIN_TOKEN_LENGTH]


def score_terms(tokens: Sequence[str], terms: Iterable[str]) -> int:
    """Count query tokens that are contained in, or contain, any stored term.

    Each token scores at most one point no matter how many terms it matches.
    """
    stored = [term.lower() for term in terms if term]
    return sum(
        1
        for token in tokens
        if any(token in term or term in token for term in stored)
    )


def rank_by_terms(
    query: str,
    candidates: Sequence[T],
    terms_of: Callable[[T], Iterable[str]],
    limit: int = DEFAULT_LIMIT,
) -> List[T]:
    """Rank candidates best-first by word overlap with the query.

    Zero-score candidates are dropped. Ties keep the candidates' original
    order (``sorted`` is stable). A query without significant tokens returns
    an empty list.
    """
    tokens = significant_tokens(query)
    if not tokens:
        return []

    scored = [(score_terms(tokens, terms_of(c)), c) for c in candidates]
    matched = [pair for pair in scored if pair[0] > 0]
    matched = sorted(matched, key=lambda pair: pair[0], reverse=True)
    return [candidate for _, candidate in matched[:limit]]


class TermScoredCache(Generic[T]):
    """Term-scored lookup over a bounded, orientation-filtered candidate set.

    Args:
        fetch_candidates: Coroutine returning up to ``limit`` entries for an
            orientation (``None`` means any), in insertion order
        terms_of: Returns the stored terms of an entry
        candidate_limit: Size of the candidate set fetched per lookup
    """

    def __init__(
        self,
        fetch_candidates: Callable[[Optional[Orientation], int], Awaitable[List[T]]],
        terms_of: Callable[[T], Iterable[str]],
        candidate_limit: int = 50,
    ):
        self.fetch_candidates = fetch_candidates
        self.terms_of = terms_of
        self.candidate_limit = candidate_limit

    async def find(
        self,
        query: str,
        orientation: Optional[Orientation] = None,
        limit: int = DEFAULT_LIMIT,
    ) -> List[T]:
        """Return up to ``limit`` entries matching ``query``, best first."""
        if not significant_tokens(query):
            return []

        candidates = await self.fetch_candidates(orientation, self.candidate_limit)
        matches = rank_by_terms(query, candidates, self.terms_of, limit)
        logger.debug(
            f"Term cache: '{query}' matched {len(matches)}/{len(candidates)} candidates"
        )
        return matches
