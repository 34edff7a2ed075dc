from __future__ import annotations

import re


_UK_POSTCODE_PREFIX = re.compile(r"[A-Z]{1,2}[0-9]")


def infer_country_code(
    country_code_hint: str | None,
    required_postcode: str | None,
) -> str | None:
    """
    Pick the ISO-2 country used to narrow the provider search.

    An explicit hint always wins. Otherwise a letters-then-digit postcode prefix
    is taken as a UK postcode. The result only biases the search and is never a
    validation criterion.
    """
    if country_code_hint and country_code_hint.strip():
        return country_code_hint

    if required_postcode and _UK_POSTCODE_PREFIX.search(required_postcode):
        return "GB"

    return None
