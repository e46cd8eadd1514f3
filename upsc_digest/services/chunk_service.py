import logging
import re
from typing import Iterable

from bs4 import BeautifulSoup

from upsc_digest.core.config import settings
from upsc_digest.core.models import Chunk, PageText

logger = logging.getLogger(__name__)

BLANK_RUN_RE = re.compile(r"\n{3,}")
INLINE_SPACE_RE = re.compile(r"[ \t\u00a0]+")
# split after a terminator, keeping it with its sentence
SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+")
TAG_HINT_RE = re.compile(r"<[A-Za-z/!]")


def sanitize_text(text: str) -> str:
    text = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    if TAG_HINT_RE.search(text):
        text = BeautifulSoup(text, "html.parser").get_text()
    text = INLINE_SPACE_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def count_words(text: str) -> int:
    return len(text.split())


def extract_excerpt(text: str, max_chars: int) -> str:
    lines = [line.strip() for line in text.split("\n") if len(line.strip()) > 10]
    excerpt = " ".join(lines[:2])[:max_chars].strip()
    return excerpt or " ".join(text.split())[:max_chars]


def split_sentences(text: str) -> list[str]:
    return [s for s in SENTENCE_END_RE.split(text) if s.strip()]


def _hard_split(sentence: str, max_chars: int) -> list[str]:
    # Last resort for a single sentence longer than the ceiling.
    pieces: list[str] = []
    buf = ""
    for word in sentence.split():
        while len(word) > max_chars:
            if buf:
                pieces.append(buf)
                buf = ""
            pieces.append(word[:max_chars])
            word = word[max_chars:]
        candidate = f"{buf} {word}" if buf else word
        if len(candidate) > max_chars:
            pieces.append(buf)
            buf = word
        else:
            buf = candidate
    if buf:
        pieces.append(buf)
    return pieces


def _segments(text: str, max_chars: int) -> list[str]:
    if len(text) <= max_chars:
        return [text]
    segments: list[str] = []
    buf = ""
    for sentence in split_sentences(text):
        candidate = f"{buf} {sentence}" if buf else sentence
        if len(candidate) <= max_chars:
            buf = candidate
            continue
        if buf:
            segments.append(buf)
        if len(sentence) <= max_chars:
            buf = sentence
        else:
            pieces = _hard_split(sentence, max_chars)
            segments.extend(pieces[:-1])
            buf = pieces[-1]
    if buf:
        segments.append(buf)
    return segments


def chunk_pages(
    pages: Iterable[PageText],
    *,
    max_chars: int | None = None,
    min_words: int | None = None,
    excerpt_chars: int | None = None,
) -> list[Chunk]:
    """Split page text into sentence-respecting chunks no longer than ``max_chars``.

    Pages (and split segments) with fewer than ``min_words`` words are noise
    such as ads, mastheads or blank pages, and never become chunks.
    """
    max_chars = max_chars or settings.CHUNK_MAX_CHARS
    min_words = settings.MIN_WORDS_PER_CHUNK if min_words is None else min_words
    excerpt_chars = excerpt_chars or settings.CHUNK_EXCERPT_CHARS

    chunks: list[Chunk] = []
    page_count = 0
    for p in pages:
        page_count += 1
        text = sanitize_text(p.text)
        words = count_words(text)
        if words < min_words:
            logger.debug("Skipping page %d (only %d words)", p.page, words)
            continue
        for segment in _segments(text, max_chars):
            seg_words = count_words(segment)
            if seg_words < min_words:
                continue
            chunks.append(Chunk(
                id=len(chunks),
                page=p.page,
                text=segment,
                excerpt=extract_excerpt(segment, excerpt_chars),
                word_count=seg_words,
            ))
    logger.info("Created %d chunks from %d pages", len(chunks), page_count)
    return chunks
