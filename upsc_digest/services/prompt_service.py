from upsc_digest.core.config import settings
from upsc_digest.core.models import CATEGORIES, Chunk
from upsc_digest.services.citation_service import build_context, build_excerpt_listing


def _confidence_rubric(floor: float) -> str:
    return f"""CONFIDENCE RULES:
- 0.9-1.0: Direct quote, exact match
- 0.7-0.9: Strong inference from text
- {floor:.2f}-0.7: Moderate inference
- Below {floor:.2f}: DO NOT INCLUDE"""


def build_classification_prompt(chunks: list[Chunk]) -> str:
    return f"""You are a UPSC Current Affairs classifier. For each chunk below, identify which UPSC category it belongs to.

CATEGORIES: {", ".join(CATEGORIES)}

RULES:
- Return ONLY valid JSON
- If a chunk doesn't fit any category clearly, mark it as "misc"
- Format: {{ "chunkId": category }}
- NO explanations, NO markdown

CHUNKS:
{build_excerpt_listing(chunks)}

Return JSON mapping chunk IDs to categories. Example:
{{ "0": "polity", "1": "economy", "2": "polity" }}"""


def build_category_prompt(category: str, chunks: list[Chunk], source_file: str) -> str:
    label = category.replace("_", " ").upper()
    return f"""You are an expert UPSC Current Affairs Analyst. Extract {label} news items from the text below.

CRITICAL HARD RULES:
1. If information is not clearly present in the text, output an empty "items" array
2. Never infer or guess missing facts
3. Never add information not in the text
4. If a reference cannot be found, skip the point
5. All points must be backed by excerpts
6. Return ONLY valid JSON, no markdown, no explanations

OUTPUT SCHEMA:
{{
  "items": [
    {{
      "title": "Concise title from text (max {settings.TITLE_MAX_CHARS} chars)",
      "points": [
        {{ "text": "Point 1 (2-3 sentences from text)", "confidence": 0.85 }},
        {{ "text": "Point 2 (2-3 sentences from text)", "confidence": 0.90 }}
      ],
      "references": [{{ "page": 1, "excerpt": "First {settings.REFERENCE_EXCERPT_CHARS} chars from text" }}],
      "confidence": 0.87
    }}
  ]
}}

{_confidence_rubric(settings.MIN_CONFIDENCE)}

SOURCE: {source_file}
CATEGORY: {category}

TEXT CHUNKS:
{build_context(chunks)}

Return ONLY the JSON object. Start with {{ and end with }}."""


def build_single_pass_prompt(text: str, source_file: str, window: int, total_windows: int) -> str:
    window_info = f" (Part {window}/{total_windows})" if total_windows > 1 else ""
    empty_categories = ",\n    ".join(f'"{cat}": []' for cat in CATEGORIES)
    return f"""You are an expert UPSC Current Affairs Analyst. Analyze the newspaper text below and extract ALL exam-relevant news items{window_info}.

CRITICAL RULES:
1. Use ONLY the provided text. NO outside knowledge. NO hallucinations.
2. Return ONLY valid JSON. No markdown, no explanations.
3. If a category has no relevant items, use an empty array [].
4. Exclude routine political statements and rhetoric; include laws, policies, court rulings, institutional reforms.
5. Keep concrete numbers (budgets, targets, percentages, years) explicitly in the points.
6. Every point must be a full statement of at least {settings.MIN_POINT_WORDS} words.
7. References: newspaper name, date (DD-MM-YYYY), exact headline, page number and a short excerpt, when present in the text.

{_confidence_rubric(settings.MIN_CONFIDENCE)}

TEXT TO ANALYZE ({len(text)} chars){window_info}:
{text}

Return JSON in this EXACT format:
{{
  "source_file": "{source_file}",
  "categories": {{
    {empty_categories}
  }}
}}

Each item in a category array must have:
{{
  "title": "Concise title (max {settings.TITLE_MAX_CHARS} chars)",
  "points": ["Point 1", "Point 2", "Point 3"],
  "references": [{{"newspaper": "The Hindu", "date": "07-01-2026", "headline": "Exact headline", "page": 1, "excerpt": "First {settings.EXTENDED_REFERENCE_EXCERPT_CHARS} chars of relevant text"}}],
  "confidence": 0.85
}}

Return ONLY the JSON object. Start with {{ and end with }}."""
