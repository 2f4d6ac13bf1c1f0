from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from resume_tracker.core.text import create_text_hash

_DOCX_SUFFIX = re.compile(r"\.docx$", re.IGNORECASE)


@dataclass(slots=True)
class DuplicateMatch:
    type: str
    existing: Any


def _field(document: Any, name: str, wire: str) -> Any:
    if isinstance(document, dict):
        return document.get(wire, document.get(name))
    return getattr(document, name, None)


def _base_name(file_name: str) -> str:
    return _DOCX_SUFFIX.sub("", file_name or "").lower()


def find_duplicate_document(
    documents: Iterable[Any],
    *,
    file_name: str,
    file_size: int,
    file_data: str,
) -> DuplicateMatch | None:
    """Match an upload against stored documents: filename, then content hash, then size + name."""
    candidates = list(documents)

    for document in candidates:
        if _field(document, "file_name", "fileName") == file_name:
            return DuplicateMatch(type="filename", existing=document)

    content_hash = create_text_hash(file_data or "")
    for document in candidates:
        if create_text_hash(_field(document, "file_data", "fileData") or "") == content_hash:
            return DuplicateMatch(type="content", existing=document)

    base_name = _base_name(file_name)
    for document in candidates:
        if (
            _field(document, "file_size", "fileSize") == file_size
            and _base_name(_field(document, "file_name", "fileName")) == base_name
        ):
            return DuplicateMatch(type="size_and_name", existing=document)
    return None
