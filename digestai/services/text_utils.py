"""Small text helpers shared by the extractors and the pipeline."""

import re

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def truncate(text: str, max_chars: int, marker: str = "[Content truncated...]") -> str:
    """Cut text to max_chars, appending a marker so the model knows it is partial."""
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}\n\n{marker}"
