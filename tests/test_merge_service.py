from upsc_digest.core.models import CATEGORIES, NewsItem, NewsPoint
from upsc_digest.services.merge_service import merge_partitions, title_key

POINT = NewsPoint(text="The cabinet approved the proposal on Tuesday evening.")


def _item(title, confidence=0.8, points=None):
    return NewsItem(title=title, points=points or [POINT], confidence=confidence)


def test_every_category_is_present():
    doc = merge_partitions([], source_file="paper.pdf")
    assert list(doc.categories) == list(CATEGORIES)
    assert doc.item_count() == 0
    assert doc.metadata.generated_at > 0


def test_duplicates_by_title_prefix_keep_first():
    first = _item("Electoral   Bonds Scheme struck down", confidence=0.9)
    dup = _item("electoral bonds scheme STRUCK DOWN", confidence=0.6)
    doc = merge_partitions([{"polity": [first]}, {"polity": [dup]}], source_file="p.pdf", rank=False)
    assert doc.categories["polity"] == [first]


def test_title_key_uses_prefix():
    assert title_key("A" * 60) == "a" * 50
    assert title_key("A" * 60 + "x") == title_key("A" * 60 + "y")


def test_floor_is_reapplied():
    low = _item("Low", confidence=0.4)
    short = _item("Short", points=[NewsPoint(text="too short")])
    doc = merge_partitions([{"economy": [low, short, _item("Kept")]}], source_file="p.pdf", rank=False)
    assert [i.title for i in doc.categories["economy"]] == ["Kept"]


def test_unknown_category_goes_to_misc():
    doc = merge_partitions([{"Sports": [_item("Cricket win")]}], source_file="p.pdf")
    assert [i.title for i in doc.categories["misc"]] == ["Cricket win"]


def test_ranking_prefers_numbers_and_is_stable():
    plain_a = _item("Plain A", confidence=0.8)
    plain_b = _item("Plain B", confidence=0.8)
    numeric = _item("Budget of ₹2,000 crore for 40% coverage", confidence=0.75)
    doc = merge_partitions([{"economy": [plain_a, plain_b, numeric]}], source_file="p.pdf", rank=True)
    titles = [i.title for i in doc.categories["economy"]]
    assert titles == ["Budget of ₹2,000 crore for 40% coverage", "Plain A", "Plain B"]
    assert doc.categories["economy"][0].has_numbers


def test_merge_is_idempotent():
    parts = [
        {"polity": [_item("One"), _item("Two")], "economy": [_item("Rs 500 crore fund")]},
        {"polity": [_item("one")]},
    ]
    once = merge_partitions(parts, source_file="p.pdf")
    twice = merge_partitions([once.categories], source_file="p.pdf")
    assert once.categories == twice.categories


def test_metadata_counts():
    doc = merge_partitions(
        [{"polity": [_item("Sure", 0.9), _item("Unsure", 0.6)]}],
        source_file="p.pdf",
        chunks_used=4,
        strategy="two_phase",
        failed_categories=["economy"],
        classification_fallback=True,
        rank=False,
    )
    assert doc.metadata.chunks_used == 4
    assert doc.metadata.low_confidence_count == 1
    assert doc.metadata.failed_categories == ["economy"]
    assert doc.metadata.classification_fallback
    assert doc.metadata.strategy == "two_phase"
