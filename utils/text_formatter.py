"""
Text formatting helpers shared by the normalizer, duplicate detector and
enrichment step.

All functions are pure and tolerate empty input (returning "" or False).
"""

import re
import unicodedata

from config.normalization_rules import DESCRIPTION_PLACEHOLDERS

_WORD_PATTERN = re.compile(r"\w\S*")
_APOSTROPHES = re.compile(r"['’‘`]")
_NON_ALPHANUMERIC = re.compile(r"[\W_]+")


def title_case(text: str) -> str:
    """
    Capitalize the first letter of every word and lowercase the rest.

    A "word" is a word character followed by any non-space run, so
    "h&m store" → "H&m Store" and "o'neill" → "O'neill".
    """
    if not text:
        return ""
    return _WORD_PATTERN.sub(
        lambda match: match.group(0)[0].upper() + match.group(0)[1:].lower(),
        text,
    )


def sentence_case(text: str) -> str:
    """Trim and upper-case the first character; the rest is left untouched."""
    if not text:
        return ""
    stripped = text.strip()
    return stripped[:1].upper() + stripped[1:]


def name_key(name: str) -> str:
    """
    Canonical identity key for a store name.

    Used for duplicate detection: two names with the same key are treated as
    the same brand.

    Examples:
        "Ganni", "ganni ", "GANNI!" → "ganni"
        "Acne Studios" → "acnestudios"
        "Café de l'Époque" → "cafedelepoque"

    Args:
        name: Display name (any casing/punctuation).

    Returns:
        Lowercased, accent-stripped key with apostrophes and every
        non-alphanumeric character removed.
    """
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFKD", name)
    without_marks = "".join(
        char for char in decomposed if not unicodedata.combining(char)
    )
    without_apostrophes = _APOSTROPHES.sub("", without_marks)
    return _NON_ALPHANUMERIC.sub("", without_apostrophes.lower())


def format_description(text: str) -> str:
    """
    Tidy a free-text description for display.

    - Text that is mostly upper case (more than 70% of over 10 letters) is
      lowercased and then sentence-capitalized.
    - Repeated "!" / "?" are collapsed.
    - *emphasis* and _emphasis_ markers are removed.
    """
    if not text:
        return ""

    formatted = text.strip()

    letters = re.sub(r"[^a-zA-Z]", "", formatted)
    if len(letters) > 10:
        upper_ratio = len(re.sub(r"[^A-Z]", "", letters)) / len(letters)
        if upper_ratio > 0.7:
            formatted = formatted.lower()
            formatted = re.sub(
                r"(^\w)|([.!?]\s*\w)",
                lambda match: match.group(0).upper(),
                formatted,
            )

    formatted = re.sub(r"!{2,}", "!", formatted)
    formatted = re.sub(r"\?{2,}", "?", formatted)
    formatted = re.sub(r"\*([^*]+)\*", r"\1", formatted)
    formatted = re.sub(r"_([^_]+)_", r"\1", formatted)

    return formatted


def is_meaningful_description(description: str) -> bool:
    """True if the description is more than a placeholder or a few words."""
    if not description:
        return False
    lowered = description.lower().strip()
    if lowered in DESCRIPTION_PLACEHOLDERS:
        return False
    return len(lowered) > 15 and len(lowered.split()) > 3
