from __future__ import annotations

import re
from pathlib import Path

from upsc_digest.core.config import settings

# Temp files written for parsing look like: upload_<uuid>.<ext>
_GENERIC_NAME_RE = re.compile(r"^upload_[0-9a-fA-F\-]{8,}(?:\.[A-Za-z0-9]{1,8})?$")


def is_generic_name(name: str | None) -> bool:
    if not name:
        return True
    n = name.strip()
    if not n:
        return True
    return bool(_GENERIC_NAME_RE.match(n))


def _clean_line(s: str) -> str:
    s = s.strip()
    # strip common markdown bullets / headings / numbering the model likes to add
    s = re.sub(r"^(?:[#>*\-\s]+|\d+[.)]\s+)", "", s).strip()
    s = re.sub(r"\s+", " ", s).strip()
    # drop trailing separators
    s = re.sub(r"[\-|:_]+$", "", s).strip()
    return s


def clean_item_title(raw: object, max_chars: int | None = None) -> str:
    """Normalize a model-written item title and cap its length."""
    max_chars = max_chars or settings.TITLE_MAX_CHARS
    title = _clean_line(raw) if isinstance(raw, str) else ""
    title = title.strip("\"'").strip()
    if not title:
        return "Untitled"
    if len(title) > max_chars:
        title = title[: max_chars - 3].rstrip() + "..."
    return title


def source_file_name(field_name: str | None, upload_name: str | None) -> str:
    """Choose the display name of the analyzed file.

    Priority:
      1) the ``fileName`` form field sent by the client
      2) the multipart filename (unless it is one of our temp names)
      3) "document"
    """
    for cand in (field_name, upload_name):
        if cand and cand.strip():
            name = Path(cand.strip()).name
            if not is_generic_name(name):
                return name
    return "document"
