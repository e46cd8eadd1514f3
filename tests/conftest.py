import json

import pytest

from upsc_digest.adapters.llm.base import LLM
from upsc_digest.core.config import settings
from upsc_digest.core.models import Chunk, PageText
from upsc_digest.services.chunk_service import chunk_pages


class FakeLLM(LLM):
    """Scripted model: ``responder(prompt)`` returns text or raises."""

    name = "fake"

    def __init__(self, responder, configured=True):
        self.responder = responder
        self.configured = configured
        self.prompts = []
        self.calls = []

    def is_configured(self) -> bool:
        return self.configured

    async def generate(self, prompt, *, max_output_tokens, temperature, top_p):
        self.prompts.append(prompt)
        self.calls.append({"max_output_tokens": max_output_tokens, "temperature": temperature, "top_p": top_p})
        result = self.responder(prompt)
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, (dict, list)):
            return json.dumps(result)
        return result


def is_classification(prompt: str) -> bool:
    return "UPSC Current Affairs classifier" in prompt


def category_of(prompt: str) -> str | None:
    for line in prompt.splitlines():
        if line.startswith("CATEGORY: "):
            return line[len("CATEGORY: "):].strip()
    return None


def make_item(title, *, confidence=0.85, points=None, page=1):
    return {
        "title": title,
        "points": points or [
            {"text": f"{title} was announced by the government this week in detail.", "confidence": confidence},
        ],
        "references": [{"page": page, "excerpt": f"{title} excerpt"}],
        "confidence": confidence,
    }


def paragraph(topic: str, sentences: int = 4) -> str:
    return " ".join(
        f"The {topic} report number {i} describes how ministries coordinated the new programme across several states."
        for i in range(sentences)
    )


@pytest.fixture
def fake_llm_factory():
    return FakeLLM


@pytest.fixture
def pages():
    return [
        PageText(page=1, text=paragraph("parliament")),
        PageText(page=2, text=paragraph("budget")),
        PageText(page=3, text="ADVERTISEMENT buy now"),
    ]


@pytest.fixture
def chunks(pages) -> list[Chunk]:
    return chunk_pages(pages)


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(settings, "RETRY_BACKOFF_BASE_SECONDS", 0.0)
    monkeypatch.setattr(settings, "RETRY_BACKOFF_MAX_SECONDS", 0.0)


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path / "data"))
    return tmp_path / "data"
