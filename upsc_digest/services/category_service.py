from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from upsc_digest.adapters.llm.base import LLM
from upsc_digest.core.config import settings
from upsc_digest.core.models import CATEGORIES, CategoryMapping, Chunk, NewsItem, NewsPoint
from upsc_digest.services.citation_service import parse_reference
from upsc_digest.services.json_service import extract_json_object
from upsc_digest.services.model_call_service import call_model, extraction_profile
from upsc_digest.services.prompt_service import build_category_prompt
from upsc_digest.services.title_service import clean_item_title

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5


@dataclass(frozen=True)
class CategoryOutcome:
    category: str
    items: list[NewsItem] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _as_confidence(value: Any, default: float | None) -> float | None:
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if isinstance(value, (int, float)):
        return min(1.0, max(0.0, float(value)))
    return default


def _parse_point(raw: Any, min_words: int) -> NewsPoint | None:
    if isinstance(raw, str):
        text, confidence = raw, None
    elif isinstance(raw, dict) and isinstance(raw.get("text"), str):
        text, confidence = raw["text"], _as_confidence(raw.get("confidence"), None)
    else:
        return None
    text = " ".join(text.split())
    # short fragments are dropped, never padded or truncated
    if len(text.split()) < min_words:
        return None
    return NewsPoint(text=text, confidence=confidence)


def parse_news_item(
    raw: Any,
    *,
    extended: bool = False,
    source_chunk_ids: list[int] | None = None,
) -> NewsItem | None:
    """Validate one model-written item; None when it does not qualify."""
    if not isinstance(raw, dict):
        return None
    raw_points = raw.get("points")
    if not isinstance(raw_points, list):
        raw_points = []
    points = [p for p in (_parse_point(rp, settings.MIN_POINT_WORDS) for rp in raw_points) if p]
    if not points:
        return None

    confidence = _as_confidence(raw.get("confidence"), DEFAULT_CONFIDENCE)
    if confidence < settings.MIN_CONFIDENCE:
        return None

    excerpt_chars = (
        settings.EXTENDED_REFERENCE_EXCERPT_CHARS if extended else settings.REFERENCE_EXCERPT_CHARS
    )
    raw_refs = raw.get("references")
    if not isinstance(raw_refs, list):
        raw_refs = []
    references = [
        r for r in (parse_reference(rr, excerpt_chars=excerpt_chars, extended=extended) for rr in raw_refs) if r
    ]

    return NewsItem(
        title=clean_item_title(raw.get("title")),
        points=points,
        references=references,
        confidence=confidence,
        source_chunk_ids=list(source_chunk_ids or []),
    )


def parse_news_items(
    payload: dict[str, Any],
    *,
    extended: bool = False,
    source_chunk_ids: list[int] | None = None,
) -> list[NewsItem]:
    raw_items = payload.get("items")
    if not isinstance(raw_items, list):
        return []
    items = []
    for raw in raw_items:
        item = parse_news_item(raw, extended=extended, source_chunk_ids=source_chunk_ids)
        if item is not None:
            items.append(item)
    return items


def parse_categorized_items(payload: dict[str, Any], *, extended: bool = True) -> dict[str, list[NewsItem]]:
    """Validate a whole-document ``{"categories": {name: [items]}}`` answer."""
    raw_categories = payload.get("categories")
    if not isinstance(raw_categories, dict):
        return {}
    out: dict[str, list[NewsItem]] = {}
    for name, raw_items in raw_categories.items():
        if not isinstance(raw_items, list):
            continue
        out[str(name)] = parse_news_items({"items": raw_items}, extended=extended)
    return out


async def extract_category(
    llm: LLM,
    category: str,
    chunks: list[Chunk],
    source_file: str,
) -> list[NewsItem]:
    tag = category.upper()
    if not chunks:
        logger.debug("EXTRACT_%s skipped: no chunks assigned", tag)
        return []

    logger.info("EXTRACT_%s processing %d chunks", tag, len(chunks))
    text = await call_model(
        llm,
        build_category_prompt(category, chunks, source_file),
        extraction_profile(),
    )
    items = parse_news_items(
        extract_json_object(text),
        source_chunk_ids=[c.id for c in chunks],
    )
    logger.info("EXTRACT_%s extracted %d items", tag, len(items))
    return items


async def extract_categories(
    llm: LLM,
    mapping: CategoryMapping,
    chunks: list[Chunk],
    source_file: str,
) -> list[CategoryOutcome]:
    """Run one extraction per active category concurrently.

    Every task runs to completion; a failed category yields an empty outcome
    carrying its error and never cancels its siblings.
    """
    by_id = {c.id: c for c in chunks}
    active = [cat for cat in CATEGORIES if mapping.get(cat)]
    logger.info("Processing %d categories in parallel", len(active))

    results = await asyncio.gather(
        *(
            extract_category(llm, cat, [by_id[i] for i in mapping[cat] if i in by_id], source_file)
            for cat in active
        ),
        return_exceptions=True,
    )

    outcomes: list[CategoryOutcome] = []
    for cat, result in zip(active, results):
        if isinstance(result, BaseException):
            logger.warning("EXTRACT_%s failed: %s: %s", cat.upper(), type(result).__name__, result)
            outcomes.append(CategoryOutcome(category=cat, error=result))
        else:
            outcomes.append(CategoryOutcome(category=cat, items=result))
    return outcomes
