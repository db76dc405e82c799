"""Text processing utilities for normalization and preview generation."""

import re
import unicodedata

# Typographic characters that NFKC leaves alone
_PUNCTUATION_MAP = {
    "\u2018": "'",  # Left single quotation mark
    "\u2019": "'",  # Right single quotation mark
    "\u201c": '"',  # Left double quotation mark
    "\u201d": '"',  # Right double quotation mark
    "\u2013": "-",  # En dash
    "\u2014": "-",  # Em dash
}


def normalize(text: str) -> str:
    """
    Normalize text by collapsing whitespace and mapping curly quotes and dashes to ASCII.

    Args:
        text: Raw text to normalize

    Returns:
        Normalized text string
    """
    if not text:
        return ""

    text = unicodedata.normalize("NFKC", text)
    for unicode_char, ascii_char in _PUNCTUATION_MAP.items():
        text = text.replace(unicode_char, ascii_char)

    return re.sub(r"\s+", " ", text).strip()


def preview(text: str, limit: int = 200) -> str:
    """Return at most `limit` leading characters of `text`."""
    if not text:
        return ""
    return text[:limit]
