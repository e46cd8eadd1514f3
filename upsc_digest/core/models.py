from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Literal

CATEGORIES: tuple[str, ...] = (
    "polity",
    "economy",
    "international_relations",
    "science_tech",
    "environment",
    "geography",
    "culture",
    "security",
    "misc",
)

FileType = Literal["pdf", "docx"]

# category name -> chunk ids routed to it; every category key is present
CategoryMapping = dict[str, list[int]]


def empty_categories() -> dict[str, list[Any]]:
    return {cat: [] for cat in CATEGORIES}


class PageText(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    text: str


class Chunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    page: int
    text: str
    excerpt: str
    word_count: int


class NewsPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float | None = None


class Reference(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int | None = None
    excerpt: str = ""
    # extended (single-pass) format only
    newspaper: str | None = None
    date: str | None = None
    headline: str | None = None


class NewsItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    points: list[NewsPoint] = Field(default_factory=list)
    references: list[Reference] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    source_chunk_ids: list[int] = Field(default_factory=list)
    # filled in by the merger when priority ranking is on
    has_numbers: bool = False
    numeric_highlights: list[str] = Field(default_factory=list)
    priority_score: float | None = None


class AnalysisMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunks_used: int = 0
    low_confidence_count: int = 0
    generated_at: int
    strategy: str | None = None
    failed_categories: list[str] = Field(default_factory=list)
    classification_fallback: bool = False


class AnalysisDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_file: str
    categories: dict[str, list[NewsItem]] = Field(default_factory=empty_categories)
    metadata: AnalysisMetadata | None = None

    def item_count(self) -> int:
        return sum(len(items) for items in self.categories.values())


class AnalysisResponse(BaseModel):
    success: bool
    data: AnalysisDocument | None = None
    error: str | None = None
    code: str | None = None
    retry_after: int | None = None


_CATEGORY_ALIASES = {
    "science_and_technology": "science_tech",
    "science": "science_tech",
    "technology": "science_tech",
    "sci_tech": "science_tech",
    "ir": "international_relations",
    "international": "international_relations",
    "defence": "security",
    "defense": "security",
}


def normalize_category(value: Any) -> str | None:
    """Map a model-written category name onto one of CATEGORIES, or None."""
    if not isinstance(value, str):
        return None
    cat = value.strip().lower().replace(" ", "_").replace("-", "_").replace("&", "and")
    cat = _CATEGORY_ALIASES.get(cat, cat)
    return cat if cat in CATEGORIES else None
