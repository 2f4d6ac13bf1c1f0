from __future__ import annotations

import re
from collections import Counter

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

STOP_WORDS = frozenset(
    """
    the be to of and a in that have i it for not on with he as you do at this but his
    by from they we say her she or an will my one all would there their what so up out
    if about who get which go me when make can like time no just him know take people
    into year your good some could them see other than then now look only come its over
    think also back after use two how our work first well way even new want because any
    these give day most us
    """.split()
)

_NON_WORD = re.compile(r"[^A-Za-z0-9_]")
_DIGITS = re.compile(r"^\d+$")
_SALARY_MIN = re.compile(r"\$?([\d,]+)k?", re.IGNORECASE)
_SALARY_RANGE = re.compile(r"\$?([\d,]+)k?\s*-\s*\$?([\d,]+)k?", re.IGNORECASE)


def _to_int32(value: int) -> int:
    return (value + 2**31) % 2**32 - 2**31


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def create_text_hash(text: str) -> str:
    """32-bit rolling hash (h * 31 + unit) over UTF-16 code units, base 36.

    Not collision resistant; stored hashes in exported data depend on the exact
    algorithm, so it must not change.
    """
    encoded = text.encode("utf-16-le", "surrogatepass")
    value = 0
    for index in range(0, len(encoded), 2):
        unit = encoded[index] | (encoded[index + 1] << 8)
        value = _to_int32((value << 5) - value + unit)
    return _base36(abs(value))


def extract_keywords(text: str, max_keywords: int = 15) -> list[str]:
    counts: Counter[str] = Counter()
    for raw in text.lower().split():
        word = _NON_WORD.sub("", raw)
        if len(word) > 2 and word not in STOP_WORDS and not _DIGITS.match(word):
            counts[word] += 1
    # Counter.most_common keeps first-seen order among equal counts.
    return [word for word, _ in counts.most_common(max_keywords)]


def _salary_value(digits: str, scaled: bool) -> int | None:
    digits = digits.replace(",", "")
    if not digits:
        return None
    value = int(digits)
    return value * 1000 if scaled else value


def extract_salary_min(salary_range: str | None) -> int | None:
    match = _SALARY_MIN.search(salary_range or "")
    if not match:
        return None
    return _salary_value(match.group(1), "k" in match.group(0).lower())


def extract_salary_max(salary_range: str | None) -> int | None:
    match = _SALARY_RANGE.search(salary_range or "")
    if not match:
        return None
    return _salary_value(match.group(2), "k" in match.group(0).lower())


def normalize_keywords(*groups: list[str]) -> list[str]:
    """Merge keyword lists, lowercased, de-duplicated in first-seen order, length > 1."""
    seen: dict[str, None] = {}
    for group in groups:
        for keyword in group:
            if not isinstance(keyword, str):
                continue
            lowered = keyword.strip().lower()
            if len(lowered) > 1:
                seen.setdefault(lowered, None)
    return list(seen)
