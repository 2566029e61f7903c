"""
URL and social-handle normalization for imported store records.
"""

import logging
import re
from urllib.parse import urlparse

from config.normalization_rules import UNPARSEABLE_URL_NAME, URL_PLACEHOLDERS

logger = logging.getLogger(__name__)

_SCHEME_PATTERN = re.compile(r"^(https?://|//)", re.IGNORECASE)
_INSTAGRAM_MARKER = "instagram.com/"


def normalize_url(url: str) -> str:
    """
    Trim a website value and default its scheme to https://.

    Placeholder cells ("none", "NA", "false") become "".  Values that already
    carry http://, https:// or a protocol-relative // are kept as they are.
    """
    if not url:
        return ""
    trimmed = url.strip()
    if not trimmed or trimmed.lower() in URL_PLACEHOLDERS:
        return ""
    if _SCHEME_PATTERN.match(trimmed):
        return trimmed
    return f"https://{trimmed}"


def normalize_instagram_handle(value: str) -> str:
    """
    Reduce an Instagram value to a bare handle.

    Examples:
        "@everlane" → "everlane"
        "https://www.instagram.com/everlane/?hl=en" → "everlane"
    """
    if not value:
        return ""
    handle = value.strip()
    if handle.lower() in URL_PLACEHOLDERS:
        return ""
    marker_index = handle.lower().find(_INSTAGRAM_MARKER)
    if marker_index != -1:
        path = handle[marker_index + len(_INSTAGRAM_MARKER):]
        handle = path.split("/")[0].split("?")[0]
    return handle.lstrip("@").strip()


def extract_name_from_url(url: str, fallback: str = UNPARSEABLE_URL_NAME) -> str:
    """
    Derive a readable brand name from a website URL.

    Takes the host, strips a leading "www.", keeps the first dot-separated
    label and capitalizes its first letter.

    Examples:
        "https://www.everlane.com/shop" → "Everlane"
        "ganni.com" → "Ganni"

    Args:
        url: Website value as found in the file.
        fallback: Name returned when no host can be parsed.

    Returns:
        The derived name, or *fallback*.
    """
    clean_url = url.strip().lower()
    if clean_url.startswith("//"):
        clean_url = clean_url[2:]
    with_scheme = clean_url if clean_url.startswith("http") else f"https://{clean_url}"
    try:
        host = urlparse(with_scheme).hostname
    except ValueError:
        host = None

    if not host:
        logger.debug(f"Could not parse a host from '{url}' — using '{fallback}'")
        return fallback

    if host.startswith("www."):
        host = host[len("www."):]
    base = host.split(".")[0]
    if not base:
        return fallback
    return base[0].upper() + base[1:]
