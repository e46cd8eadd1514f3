from __future__ import annotations

from typing import Any

from upsc_digest.core.models import Chunk, Reference


def build_context(chunks: list[Chunk]) -> str:
    """Full chunk texts, each tagged so the model can cite page and chunk."""
    blocks = []
    for c in chunks:
        blocks.append(f"[Page {c.page}, Chunk {c.id}]\n{c.text}\n")
    return "\n---\n".join(blocks)


def build_excerpt_listing(chunks: list[Chunk]) -> str:
    return "\n".join(f"Chunk {c.id} (Page {c.page}): {c.excerpt}..." for c in chunks)


def _as_page(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer() and value > 0:
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    return None


def _as_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return " ".join(value.split())
    return None


def parse_reference(raw: Any, *, excerpt_chars: int, extended: bool = False) -> Reference | None:
    """Validate one model-written reference; None when it cannot be cited."""
    if not isinstance(raw, dict):
        return None
    page = _as_page(raw.get("page"))
    excerpt = (_as_text(raw.get("excerpt")) or "")[:excerpt_chars]
    if not extended:
        # the compact format cites by page only
        if page is None:
            return None
        return Reference(page=page, excerpt=excerpt)
    ref = Reference(
        page=page,
        excerpt=excerpt,
        newspaper=_as_text(raw.get("newspaper")),
        date=_as_text(raw.get("date")),
        headline=_as_text(raw.get("headline")),
    )
    if page is None and not (excerpt or ref.headline):
        return None
    return ref
