import re

from upsc_digest.core.models import NewsItem

MAX_HIGHLIGHTS = 5
MAX_BOOST = 0.2
BOOST_PER_HIGHLIGHT = 0.05

# Order matters: earlier patterns win when highlights are capped.
NUMERIC_PATTERNS = [
    # currency
    re.compile(r"(?:₹|Rs\.?|INR)\s*[\d,]+(?:\.\d+)?(?:\s*(?:crore|lakh|billion|million|thousand|trillion))?", re.IGNORECASE),
    re.compile(r"(?:\$|US\$|USD)\s*[\d,]+(?:\.\d+)?(?:\s*(?:billion|million|thousand|trillion))?", re.IGNORECASE),
    # percentages
    re.compile(r"\d+(?:\.\d+)?\s*(?:%|per\s?cent\b)", re.IGNORECASE),
    # physical units
    re.compile(r"\d[\d,]*(?:\.\d+)?\s*(?:MW|GW|kW|km|sq\s?km|hectares?|metric\s+tons|tonnes?|tons?|kg|MT)\b", re.IGNORECASE),
    # year ranges, then single years 2020-2039
    re.compile(r"\b20[2-3]\d\s*[-–]\s*(?:20)?\d{2}\b"),
    re.compile(r"\b20[2-3]\d\b"),
    re.compile(r"\b\d+\s*(?:targets?|goals?)\b", re.IGNORECASE),
]


def numeric_highlights(text: str) -> list[str]:
    found: list[str] = []
    taken: list[tuple[int, int]] = []
    for pattern in NUMERIC_PATTERNS:
        for m in pattern.finditer(text):
            start, end = m.span()
            # a year inside an already matched range is not a new highlight
            if any(s <= start and end <= e for s, e in taken):
                continue
            value = m.group(0).strip()
            taken.append((start, end))
            if value not in found:
                found.append(value)
    return found[:MAX_HIGHLIGHTS]


def priority_score(confidence: float, highlight_count: int) -> float:
    boost = min(MAX_BOOST, highlight_count * BOOST_PER_HIGHLIGHT)
    return round(min(1.0, confidence + boost), 4)


def annotate_item(item: NewsItem) -> NewsItem:
    """Return a copy of the item with numeric highlights and priority filled in."""
    text = " ".join([item.title, *(p.text for p in item.points)])
    highlights = numeric_highlights(text)
    return item.model_copy(update={
        "has_numbers": bool(highlights),
        "numeric_highlights": highlights,
        "priority_score": priority_score(item.confidence, len(highlights)),
    })
