import asyncio
import logging
from contextlib import nullcontext

from upsc_digest.adapters.llm.base import LLM
from upsc_digest.core.config import settings
from upsc_digest.core.errors import (
    AnalysisError,
    ConfigurationError,
    ModelOutputError,
    NoContentError,
    TransientModelError,
)
from upsc_digest.core.models import AnalysisDocument, Chunk
from upsc_digest.services.category_service import extract_categories, parse_categorized_items
from upsc_digest.services.chunk_service import chunk_pages
from upsc_digest.services.classify_service import PROPAGATED_ERRORS, classify_chunks
from upsc_digest.services.extract_service import (
    detect_file_type,
    extract_pages,
    stored_upload,
    validate_upload_size,
)
from upsc_digest.services.governor_service import RequestGovernor
from upsc_digest.services.json_service import extract_json_object
from upsc_digest.services.merge_service import merge_partitions
from upsc_digest.services.model_call_service import call_model, single_pass_profile
from upsc_digest.services.prompt_service import build_single_pass_prompt

logger = logging.getLogger(__name__)

STRATEGIES = ("two_phase", "single_pass")


def _total_failure(errors: list[BaseException]) -> BaseException:
    """Pick the document-level error when no category produced a result."""
    for e in errors:
        if isinstance(e, PROPAGATED_ERRORS):
            return e
    for e in errors:
        if isinstance(e, TransientModelError):
            e.retry_after = e.retry_after or settings.RETRY_AFTER_SECONDS
            return e
    first = errors[0]
    if isinstance(first, AnalysisError):
        return first
    return ModelOutputError(f"every category failed: {first!r}")


async def run_two_phase(llm: LLM, chunks: list[Chunk], source_file: str) -> AnalysisDocument:
    logger.info("Beginning two-phase analysis of %d chunks", len(chunks))
    classification = await classify_chunks(llm, chunks)
    outcomes = await extract_categories(llm, classification.mapping, chunks, source_file)

    failed = [o for o in outcomes if not o.ok]
    if outcomes and len(failed) == len(outcomes):
        raise _total_failure([o.error for o in failed])
    if failed:
        logger.warning("%d of %d categories failed: %s", len(failed), len(outcomes), [o.category for o in failed])

    return merge_partitions(
        [{o.category: o.items} for o in outcomes if o.ok],
        source_file=source_file,
        chunks_used=len(chunks),
        strategy="two_phase",
        failed_categories=[o.category for o in failed],
        classification_fallback=classification.fallback,
    )


def build_windows(chunks: list[Chunk], window_chars: int | None = None, max_windows: int | None = None) -> list[list[Chunk]]:
    """Group consecutive chunks into text windows for single-pass calls."""
    window_chars = window_chars or settings.SINGLE_PASS_WINDOW_CHARS
    max_windows = max_windows or settings.SINGLE_PASS_MAX_WINDOWS
    windows: list[list[Chunk]] = []
    current: list[Chunk] = []
    size = 0
    for c in chunks:
        if current and size + len(c.text) > window_chars:
            windows.append(current)
            current, size = [], 0
        current.append(c)
        size += len(c.text)
    if current:
        windows.append(current)
    if len(windows) > max_windows:
        dropped = sum(len(w) for w in windows[max_windows:])
        logger.warning("Document exceeds %d windows; %d trailing chunks not analyzed", max_windows, dropped)
        windows = windows[:max_windows]
    return windows


def render_window(chunks: list[Chunk]) -> str:
    parts = []
    page = None
    for c in chunks:
        if c.page != page:
            page = c.page
            parts.append(f"=== PAGE {page} ===")
        parts.append(c.text)
    return "\n\n".join(parts)


async def run_single_pass(llm: LLM, chunks: list[Chunk], source_file: str) -> AnalysisDocument:
    windows = build_windows(chunks)
    logger.info("Beginning single-pass analysis in %d windows", len(windows))
    partitions = []
    for i, window in enumerate(windows, 1):
        prompt = build_single_pass_prompt(render_window(window), source_file, i, len(windows))
        # model-call failures propagate; only unreadable output degrades
        text = await call_model(llm, prompt, single_pass_profile())
        try:
            payload = extract_json_object(text)
        except ModelOutputError as e:
            logger.warning("Window %d/%d returned no usable JSON: %s", i, len(windows), e)
            continue
        partitions.append(parse_categorized_items(payload))
    if not partitions:
        raise ModelOutputError("no window produced a readable result")

    return merge_partitions(
        partitions,
        source_file=source_file,
        chunks_used=sum(len(w) for w in windows),
        strategy="single_pass",
    )


async def analyze_chunks(llm: LLM, chunks: list[Chunk], source_file: str, strategy: str | None = None) -> AnalysisDocument:
    strategy = strategy or settings.ANALYSIS_STRATEGY
    if strategy == "single_pass":
        return await run_single_pass(llm, chunks, source_file)
    if strategy != "two_phase":
        raise ConfigurationError(f"unknown ANALYSIS_STRATEGY {strategy!r}")
    return await run_two_phase(llm, chunks, source_file)


async def analyze_upload(
    content: bytes,
    filename: str,
    *,
    llm: LLM,
    governor: RequestGovernor | None,
    source_file: str | None = None,
    strategy: str | None = None,
) -> AnalysisDocument:
    """Run the whole pipeline for one uploaded file behind the request governor.

    Pass ``governor=None`` when the caller already holds an admission.
    """
    source_file = source_file or filename
    with governor.admit() if governor is not None else nullcontext():
        file_type = detect_file_type(filename)
        validate_upload_size(len(content))
        logger.info("Processing %s (%.2f MB)", source_file, len(content) / (1024 * 1024))

        # the upload lives on disk only while the parsers need it
        with stored_upload(content, file_type) as path:
            pages = await asyncio.to_thread(extract_pages, path, file_type)

        chunks = chunk_pages(pages)
        if not chunks:
            raise NoContentError(f"no chunk reached {settings.MIN_WORDS_PER_CHUNK} words")

        if not llm.is_configured():
            raise ConfigurationError(f"{llm.name} provider is not configured")

        doc = await analyze_chunks(llm, chunks, source_file, strategy=strategy)
        logger.info("Analysis complete: %d items for %s", doc.item_count(), source_file)
        return doc
