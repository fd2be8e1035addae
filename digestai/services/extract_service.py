"""Web page fetching and main-content extraction."""

import re
from dataclasses import dataclass
from typing import Optional

import httpx
from bs4 import BeautifulSoup, Comment

from digestai.core.config import settings
from digestai.core.exceptions import ContentExtractionError, ContentFetchError
from digestai.core.logging import logger
from digestai.services.text_utils import BROWSER_HEADERS, count_words

BLOCK_TAGS = ["p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "tr", "br", "hr"]
MIN_EXTRACTED_WORDS = 10


@dataclass
class ExtractedContent:
    text: str
    title: str
    excerpt: Optional[str]
    final_url: str
    word_count: int


def extract_title(soup: BeautifulSoup) -> str:
    """Page title from <title>, og:title or the first <h1>."""
    if soup.title and soup.title.string and soup.title.string.strip():
        return soup.title.string.strip()

    og_title = soup.find("meta", attrs={"property": "og:title"})
    if og_title and og_title.get("content", "").strip():
        return og_title["content"].strip()

    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        return h1.get_text(" ", strip=True)

    return "Untitled"


def extract_excerpt(soup: BeautifulSoup) -> Optional[str]:
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content", "").strip():
            return meta["content"].strip()
    return None


def extract_main_text(soup: BeautifulSoup) -> str:
    """Plain text of <article>, else <main>, else the whole document."""
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    container = soup.find("article") or soup.find("main") or soup.body or soup

    # Block elements end a line
    for tag in container.find_all(BLOCK_TAGS):
        tag.append("\n")

    text = container.get_text(" ")
    lines = (re.sub(r"[ \t\r\f\v\xa0]+", " ", line).strip() for line in text.split("\n"))
    text = "\n".join(line for line in lines if line)
    return text.strip()


def parse_html(html: str, final_url: str) -> ExtractedContent:
    """Reduce an HTML document to title, excerpt and main text."""
    soup = BeautifulSoup(html, "html.parser")
    title = extract_title(soup)
    excerpt = extract_excerpt(soup)
    text = extract_main_text(soup)
    return ExtractedContent(
        text=text,
        title=title,
        excerpt=excerpt,
        final_url=final_url,
        word_count=count_words(text),
    )


class ExtractService:
    """Fetches web pages and extracts their readable content."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    async def fetch_html(self, url: str, timeout: Optional[float] = None) -> httpx.Response:
        timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                headers=BROWSER_HEADERS,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            raise ContentFetchError("Request timed out") from e
        except httpx.HTTPError as e:
            raise ContentFetchError(f"Failed to fetch URL: {e}") from e

        if response.status_code >= 400:
            raise ContentFetchError(f"Failed to fetch URL (status {response.status_code})")

        return response

    async def extract_from_url(self, url: str, timeout: Optional[float] = None) -> ExtractedContent:
        """Fetch a page and return its extracted content."""
        logger.info(f"Fetching URL: {url}")
        response = await self.fetch_html(url, timeout=timeout)

        extracted = parse_html(response.text, str(response.url))
        if extracted.word_count < MIN_EXTRACTED_WORDS:
            raise ContentExtractionError("Could not extract meaningful content from the URL")

        logger.info(f"Extracted {extracted.word_count} words from {extracted.final_url}")
        return extracted


# Singleton instance
extract_service = ExtractService()
