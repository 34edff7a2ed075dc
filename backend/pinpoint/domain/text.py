from __future__ import annotations

import re


_NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9]")

# Applied in order; "high st" is expanded first so the generic rule cannot
# leave a town-name fragment behind.
_STREET_SUBSTITUTIONS = (
    (re.compile(r"\bhigh\s*st\b", flags=re.IGNORECASE), "high street"),
    (re.compile(r"\bst\b", flags=re.IGNORECASE), "street"),
    (re.compile(r"\brd\b", flags=re.IGNORECASE), "road"),
    (re.compile(r"\bave\b", flags=re.IGNORECASE), "avenue"),
)


def normalize(text: str | None) -> str:
    """Reduce text to a lowercase key of ASCII letters and digits only."""

    return _NON_ALNUM_PATTERN.sub("", (text or "").lower())


def normalize_street(text: str | None) -> str:
    """
    Build a comparison key for a street name.

    Common street-type abbreviations are expanded on word boundaries before the
    generic normalization, so "High St" and "High Street" share a key while
    words such as "Stanley" are left alone.
    """
    expanded = text or ""
    for pattern, replacement in _STREET_SUBSTITUTIONS:
        expanded = pattern.sub(replacement, expanded)
    return normalize(expanded)
