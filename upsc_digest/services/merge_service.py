from __future__ import annotations

import logging
import time
from typing import Iterable, Mapping

from upsc_digest.core.config import settings
from upsc_digest.core.models import (
    CATEGORIES,
    AnalysisDocument,
    AnalysisMetadata,
    NewsItem,
    empty_categories,
    normalize_category,
)
from upsc_digest.services.numeric_service import annotate_item

logger = logging.getLogger(__name__)


def title_key(title: str, prefix: int | None = None) -> str:
    prefix = prefix or settings.DEDUP_TITLE_PREFIX
    return " ".join(title.split()).casefold()[:prefix]


def validate_item(item: NewsItem) -> NewsItem | None:
    """Apply the output floor: confidence threshold and minimum point length."""
    if item.confidence < settings.MIN_CONFIDENCE:
        return None
    points = [p for p in item.points if len(p.text.split()) >= settings.MIN_POINT_WORDS]
    if not points:
        return None
    if len(points) != len(item.points):
        return item.model_copy(update={"points": points})
    return item


def dedupe_items(items: Iterable[NewsItem]) -> list[NewsItem]:
    """First occurrence of each normalized title prefix wins."""
    seen: set[str] = set()
    unique = []
    for item in items:
        key = title_key(item.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def rank_items(items: list[NewsItem]) -> list[NewsItem]:
    annotated = [annotate_item(i) for i in items]
    # sorted() is stable, so equal scores keep extraction order
    return sorted(annotated, key=lambda i: i.priority_score or 0.0, reverse=True)


def merge_partitions(
    partitions: Iterable[Mapping[str, list[NewsItem]]],
    *,
    source_file: str,
    chunks_used: int = 0,
    rank: bool | None = None,
    strategy: str | None = None,
    failed_categories: Iterable[str] = (),
    classification_fallback: bool = False,
) -> AnalysisDocument:
    """Combine per-category or per-window results into one AnalysisDocument.

    Every category key is present in the result. Items are concatenated in
    partition order, re-validated, deduplicated by title prefix and, when
    ranking is on, sorted by priority score. Merging an already merged
    document again yields the same items.
    """
    rank = settings.PRIORITY_RANKING if rank is None else rank
    buckets: dict[str, list[NewsItem]] = empty_categories()
    total_in = 0
    for part in partitions:
        for name, items in part.items():
            cat = normalize_category(name) or "misc"
            buckets[cat].extend(items)
            total_in += len(items)

    categories: dict[str, list[NewsItem]] = {}
    for cat in CATEGORIES:
        valid = [v for v in (validate_item(i) for i in buckets[cat]) if v is not None]
        unique = dedupe_items(valid)
        categories[cat] = rank_items(unique) if rank else unique

    kept = sum(len(items) for items in categories.values())
    low_confidence = sum(
        1 for items in categories.values() for i in items if i.confidence < settings.HIGH_CONFIDENCE
    )
    logger.info("Merged %d items into %d unique items", total_in, kept)

    return AnalysisDocument(
        source_file=source_file,
        categories=categories,
        metadata=AnalysisMetadata(
            chunks_used=chunks_used,
            low_confidence_count=low_confidence,
            generated_at=int(time.time() * 1000),
            strategy=strategy,
            failed_categories=sorted(set(failed_categories)),
            classification_fallback=classification_fallback,
        ),
    )
