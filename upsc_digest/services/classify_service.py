from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from upsc_digest.adapters.llm.base import LLM
from upsc_digest.core.errors import (
    ConfigurationError,
    ModelOutputError,
    RateLimitedError,
    ServiceUnavailableError,
)
from upsc_digest.core.models import CATEGORIES, CategoryMapping, Chunk, normalize_category
from upsc_digest.services.json_service import extract_json_object
from upsc_digest.services.model_call_service import call_model, classification_profile
from upsc_digest.services.prompt_service import build_classification_prompt

logger = logging.getLogger(__name__)

_CHUNK_KEY_RE = re.compile(r"\d+")

# These fail the whole document instead of degrading to the fallback mapping.
PROPAGATED_ERRORS = (RateLimitedError, ServiceUnavailableError, ConfigurationError)


@dataclass(frozen=True)
class ClassificationResult:
    mapping: CategoryMapping
    fallback: bool = False

    def active_categories(self) -> list[str]:
        return [cat for cat in CATEGORIES if self.mapping.get(cat)]


def empty_mapping() -> CategoryMapping:
    return {cat: [] for cat in CATEGORIES}


def fallback_mapping(chunks: list[Chunk]) -> CategoryMapping:
    ids = [c.id for c in chunks]
    return {cat: list(ids) for cat in CATEGORIES}


def parse_classification(raw: dict[str, Any], chunks: list[Chunk]) -> CategoryMapping:
    """Turn a ``{chunkId: category}`` object into a complete CategoryMapping.

    Unknown chunk ids are ignored; chunks the model left out, or gave an
    unknown category, are routed to ``misc``.
    """
    known = {c.id for c in chunks}
    mapping = empty_mapping()
    assigned: set[int] = set()
    for key, value in raw.items():
        m = _CHUNK_KEY_RE.search(str(key))
        if not m:
            continue
        cid = int(m.group(0))
        if cid not in known or cid in assigned:
            continue
        cat = normalize_category(value)
        if cat is None:
            continue
        mapping[cat].append(cid)
        assigned.add(cid)
    if not assigned:
        raise ModelOutputError("classification mapped no known chunks")
    for c in chunks:
        if c.id not in assigned:
            mapping["misc"].append(c.id)
    for cat in CATEGORIES:
        mapping[cat].sort()
    return mapping


async def classify_chunks(llm: LLM, chunks: list[Chunk]) -> ClassificationResult:
    if not chunks:
        return ClassificationResult(mapping=empty_mapping())
    try:
        text = await call_model(llm, build_classification_prompt(chunks), classification_profile())
        mapping = parse_classification(extract_json_object(text), chunks)
    except PROPAGATED_ERRORS:
        raise
    except Exception as e:
        logger.warning(
            "Classification failed (%s: %s); using all %d chunks for every category",
            type(e).__name__,
            e,
            len(chunks),
        )
        return ClassificationResult(mapping=fallback_mapping(chunks), fallback=True)

    result = ClassificationResult(mapping=mapping)
    logger.info(
        "Mapped %d chunks across %d categories",
        sum(len(ids) for ids in mapping.values()),
        len(result.active_categories()),
    )
    return result
