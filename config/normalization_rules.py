"""
Deterministic normalization tables for imported store records.

Price buckets are matched case-insensitively against the bucket id, its
display label, and its synonyms.  A non-empty value that matches nothing maps
to UNKNOWN_PRICE_BUCKET, which is kept distinct from "" (no value supplied).
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class PriceBucket:
    """One price tier used by the filtering system."""

    id: str
    label: str
    synonyms: tuple[str, ...]


# ---------------------------------------------------------------------------
# Price range buckets (id, display label, accepted synonyms)
# ---------------------------------------------------------------------------
PRICE_BUCKETS: tuple[PriceBucket, ...] = (
    PriceBucket("low", "$", ("$", "low", "cheap", "budget", "<$100")),
    PriceBucket("mid", "$$", ("$$", "mid", "average", "moderate", "$100-500")),
    PriceBucket("high", "$$$", ("$$$", "high", "premium", "luxury", "$500-1000")),
    PriceBucket("ultra", "$$$$", ("$$$$", "ultra", "exclusive", ">$1000")),
)

# Sentinel for a price value that was supplied but matched no bucket.
UNKNOWN_PRICE_BUCKET: str = "unknown"

# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------
# A tags cell is split on any of these characters.
TAG_SEPARATOR_PATTERN: re.Pattern = re.compile(r"[|;,]")

# Lists in JSON input are joined with this before tag splitting.
JSON_LIST_JOINER: str = "|"

# ---------------------------------------------------------------------------
# Placeholder values
# ---------------------------------------------------------------------------
# Name given to a record whose name could not be resolved at all.
DEFAULT_STORE_NAME: str = "New Brand"

# Name given when a website is present but its host cannot be parsed.
UNPARSEABLE_URL_NAME: str = "Untitled Store"

# Cell values that mean "no URL" in scraped spreadsheets.
URL_PLACEHOLDERS: set[str] = {"none", "na", "false"}

# Descriptions that carry no information.
DESCRIPTION_PLACEHOLDERS: set[str] = {
    "", "none", "n/a", "na", "false", "no description yet.",
}
