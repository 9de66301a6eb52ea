"""Locale tag table and the disallowed-locale title heuristic.

Matching is plain case-insensitive substring search over update titles.
A title can coincidentally contain something that looks like a locale tag
(a product code such as "sr-latn" inside a longer token), in which case the
update is treated as language-specific. That false-positive risk is
accepted; the heuristic is intentionally not tightened to whole tokens.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

# Language tags WSUS uses in update titles and language packs.
KNOWN_LOCALES: tuple[str, ...] = (
    "ar-sa", "bg-bg", "cs-cz", "da-dk", "de-de", "el-gr", "en-gb", "en-us",
    "es-es", "es-mx", "et-ee", "fi-fi", "fr-ca", "fr-fr", "he-il", "hi-in",
    "hr-hr", "hu-hu", "id-id", "it-it", "ja-jp", "ko-kr", "lt-lt", "lv-lv",
    "ms-my", "nb-no", "nl-nl", "pl-pl", "pt-br", "pt-pt", "ro-ro", "ru-ru",
    "sk-sk", "sl-si", "sr-latn-rs", "sv-se", "th-th", "tr-tr", "uk-ua",
    "vi-vn", "zh-cn", "zh-hk", "zh-tw",
)

DEFAULT_ALLOWED_LOCALES: tuple[str, ...] = ("en-us", "en-gb")


def normalize_locales(tags: Iterable[str]) -> tuple[str, ...]:
    """Lower-case, strip, and de-duplicate locale tags, keeping order."""
    seen: dict[str, None] = {}
    for tag in tags:
        cleaned = tag.strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


@lru_cache(maxsize=32)
def _alternation(tags: frozenset[str]) -> re.Pattern[str] | None:
    if not tags:
        return None
    # Longest first so "sr-latn-rs" wins over any shorter overlapping tag.
    ordered = sorted(tags, key=lambda t: (-len(t), t))
    return re.compile("|".join(re.escape(t) for t in ordered), re.IGNORECASE)


def matches_disallowed_locale(
    title: str,
    all_locales: Iterable[str],
    allowed_locales: Iterable[str],
) -> bool:
    """Return True if the title names a known locale and no allowed one.

    Titles with no known locale tag are language-neutral and never match.
    An empty allow-list disables the rule.
    """
    allowed = frozenset(t.lower() for t in allowed_locales if t)
    if not allowed:
        return False

    known = _alternation(frozenset(t.lower() for t in all_locales if t))
    if known is None or not known.search(title):
        return False

    return _alternation(allowed).search(title) is None
