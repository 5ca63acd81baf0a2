"""
Permutation Search

MIG instance creation is order sensitive: a layout that fails to apply in one
creation order may succeed in another because of placement/fragmentation
inside the GPU. This module walks the distinct creation orders of a layout
until one works.

Core algorithm:
1. Flatten the layout into one entry per instance
2. Visit each distinct permutation of that multiset exactly once
   (n! / (c1! * ... * ck!) of them, never repeating an ordering)
3. Stop at the first ordering the attempt callback accepts
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Hashable, Iterator, List, Optional, Sequence, Tuple

from ..core.errors import ExhaustedError, OrderingError
from ..core.layout import Layout
from ..core.profiles import Profile


logger = logging.getLogger(__name__)

AttemptFn = Callable[[Tuple[Profile, ...]], None]


@dataclass(frozen=True)
class SearchResult:
    ordering: Tuple[Profile, ...]
    attempts: int


def count_unique_permutations(sequence: Sequence[Hashable]) -> int:
    """Multinomial coefficient n! / (c1! * ... * ck!) of a multiset"""
    total = math.factorial(len(sequence))
    for count in Counter(sequence).values():
        total //= math.factorial(count)
    return total


def unique_permutations(sequence: Sequence[Hashable]) -> Iterator[tuple]:
    """
    Yield every distinct ordering of a multiset exactly once.

    Elements are ranked by first appearance and the rank vector is stepped
    through lexicographic next-permutation, which skips over orderings that
    only swap equal elements. The first ordering yielded is the input grouped
    by value; an empty sequence yields nothing.
    """
    items = list(sequence)
    if not items:
        return

    ranks = {}
    for item in items:
        ranks.setdefault(item, len(ranks))
    values = list(ranks)
    state: List[int] = sorted(ranks[item] for item in items)

    while True:
        yield tuple(values[r] for r in state)

        # Rightmost position that can still grow
        pivot = len(state) - 2
        while pivot >= 0 and state[pivot] >= state[pivot + 1]:
            pivot -= 1
        if pivot < 0:
            return

        successor = len(state) - 1
        while state[successor] <= state[pivot]:
            successor -= 1

        state[pivot], state[successor] = state[successor], state[pivot]
        state[pivot + 1:] = reversed(state[pivot + 1:])


def search_orderings(layout: Layout, attempt: AttemptFn) -> SearchResult:
    """
    Try creation orders of a layout until one succeeds

    attempt() returns normally on success and raises OrderingError when that
    ordering failed but another might work. Any other exception is fatal and
    propagates immediately. Undoing partial work between attempts is the
    callback's job.

    Raises ExhaustedError once every distinct ordering has failed.
    """
    flattened = layout.flatten()
    if not flattened:
        return SearchResult(ordering=(), attempts=0)

    attempts = 0
    last_error: Optional[OrderingError] = None
    for ordering in unique_permutations(flattened):
        attempts += 1
        try:
            attempt(ordering)
        except OrderingError as e:
            last_error = e
            logger.debug(f"Ordering {attempts} failed for [{layout}]: {e}")
            continue

        logger.debug(f"Layout [{layout}] succeeded on ordering {attempts}")
        return SearchResult(ordering=ordering, attempts=attempts)

    raise ExhaustedError(layout, attempts, last_error=last_error)
