# ABOUTME: Review merge rules and the per-provider retention cap.
# ABOUTME: Keeps at most the five newest reviews from each provider on a record.

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from shelfkeeper.metadata.policy import UNCHANGED
from shelfkeeper.metadata.types import BookReview

MAX_REVIEWS_PER_PROVIDER = 5


def _sort_key(review: BookReview) -> tuple[bool, float]:
    # Newest first, undated last.
    if review.date is None:
        return (True, 0.0)
    return (False, -_timestamp(review.date))


def _timestamp(when: datetime) -> float:
    if when.tzinfo is None:
        return when.timestamp()
    return when.astimezone().replace(tzinfo=None).timestamp()


def cap_reviews(
    reviews: Sequence[BookReview], limit: int = MAX_REVIEWS_PER_PROVIDER
) -> list[BookReview]:
    """Keep the ``limit`` most recent reviews per provider.

    Reviews are grouped by provider in order of first appearance; within a
    group they are sorted by date descending with undated reviews last.
    """
    groups: dict[Any, list[BookReview]] = {}
    for review in reviews:
        groups.setdefault(review.provider, []).append(review)
    capped: list[BookReview] = []
    for group in groups.values():
        capped.extend(sorted(group, key=_sort_key)[:limit])
    return capped


def reviews_outcome(
    current: Sequence[BookReview],
    incoming: Sequence[BookReview],
    *,
    locked: bool,
    clear: bool,
    merge: bool,
) -> list[BookReview] | Any:
    """Decide the new review list for a record.

    Only reviews that name a provider are taken from the incoming side. The
    cap is applied to every written result, merge or replace.

    Returns:
        The new review list, or UNCHANGED if reviews must not be written.
    """
    if locked:
        return UNCHANGED
    if clear:
        return []
    supplied = [review for review in incoming if review.provider is not None]
    if not supplied:
        return UNCHANGED
    if merge:
        combined = list(current)
        combined.extend(review for review in supplied if review not in combined)
    else:
        combined = supplied
    return cap_reviews(combined)
