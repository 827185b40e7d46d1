# feedbackledger/store/query.py
"""Side-effect-free filtering and ordering over already-loaded records."""

from typing import Dict, Iterable, List, Union

from feedbackledger.core.types import Category, FeedbackRecord

ALL_CATEGORIES = "all"


def filter_records(
    records: Iterable[FeedbackRecord],
    search_term: str = "",
    category: Union[Category, str] = ALL_CATEGORIES,
) -> List[FeedbackRecord]:
    """
    Case-insensitive substring match of search_term against reviewee or
    project_id, restricted to one category unless category is "all".
    """
    needle = (search_term or "").lower()
    wanted = category.value if isinstance(category, Category) else (category or ALL_CATEGORIES).lower()

    matched = []
    for record in records:
        if needle and needle not in record.reviewee.lower() and needle not in record.project_id.lower():
            continue
        if wanted != ALL_CATEGORIES and record.category.value != wanted:
            continue
        matched.append(record)
    return matched


def sort_recent(records: Iterable[FeedbackRecord]) -> List[FeedbackRecord]:
    """Newest first; equal timestamps fall back to id order for a stable display."""
    by_id = sorted(records, key=lambda r: r.id, reverse=True)
    return sorted(by_id, key=lambda r: r.created_at, reverse=True)


def category_counts(records: Iterable[FeedbackRecord]) -> Dict[str, int]:
    counts = {"total": 0}
    counts.update({c.value: 0 for c in Category})
    for record in records:
        counts["total"] += 1
        counts[record.category.value] += 1
    return counts
