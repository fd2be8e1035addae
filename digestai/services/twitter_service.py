"""X/Twitter thread fetching through public Nitter mirrors."""

import re
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup

from digestai.core.config import settings
from digestai.core.exceptions import ContentFetchError
from digestai.core.logging import logger
from digestai.services.text_utils import BROWSER_HEADERS

TWITTER_URL_PATTERNS = [
    re.compile(r"(?:twitter\.com|x\.com)/([^/]+)/status/(\d+)", re.IGNORECASE),
    re.compile(r"(?:twitter\.com|x\.com)/i/web/status/(\d+)", re.IGNORECASE),
]


@dataclass
class Tweet:
    content: str
    timestamp: Optional[str] = None


@dataclass
class TwitterThread:
    tweet_id: str
    author: str
    author_handle: str
    tweets: List[Tweet] = field(default_factory=list)

    def format(self) -> str:
        return "\n\n---\n\n".join(
            f"Tweet {i}:\n{tweet.content}" for i, tweet in enumerate(self.tweets, start=1)
        )


@dataclass
class TweetRef:
    tweet_id: str
    handle: Optional[str] = None


def parse_twitter_url(url: str) -> Optional[TweetRef]:
    for pattern in TWITTER_URL_PATTERNS:
        match = pattern.search(url or "")
        if not match:
            continue
        groups = match.groups()
        if len(groups) == 2:
            return TweetRef(tweet_id=groups[1], handle=groups[0])
        return TweetRef(tweet_id=groups[0])
    return None


def parse_nitter_page(html: str, tweet_id: str) -> Optional[TwitterThread]:
    """Read author and thread tweets from a Nitter status page."""
    soup = BeautifulSoup(html, "html.parser")

    author_el = soup.select_one(".tweet-header .fullname")
    handle_el = soup.select_one(".tweet-header .username")
    author = author_el.get_text(strip=True) if author_el else ""
    handle = handle_el.get_text(strip=True).replace("@", "") if handle_el else ""

    tweets = []
    for item in soup.select(".timeline-item, .main-tweet"):
        content_el = item.select_one(".tweet-content")
        content = content_el.get_text(" ", strip=True) if content_el else ""
        if not content:
            continue
        date_link = item.select_one(".tweet-date a")
        tweets.append(Tweet(content=content, timestamp=date_link.get("title") if date_link else None))

    if not tweets:
        return None

    return TwitterThread(
        tweet_id=tweet_id,
        author=author or "Unknown",
        author_handle=handle or "unknown",
        tweets=tweets,
    )


class TwitterService:
    """Tries each configured Nitter instance until one returns the thread."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    async def _fetch_via_nitter(self, tweet_id: str) -> Optional[TwitterThread]:
        async with httpx.AsyncClient(
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            headers=BROWSER_HEADERS,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            for instance in settings.NITTER_INSTANCES:
                logger.info(f"Trying Nitter instance: {instance}")
                try:
                    response = await client.get(f"https://{instance}/i/status/{tweet_id}")
                except httpx.HTTPError as e:
                    logger.warning(f"Nitter instance {instance} failed: {e}")
                    continue

                if response.status_code != 200:
                    logger.warning(f"Nitter instance {instance} returned {response.status_code}")
                    continue

                thread = parse_nitter_page(response.text, tweet_id)
                if thread:
                    return thread

        return None

    async def fetch_thread(self, tweet_id: str) -> TwitterThread:
        thread = await self._fetch_via_nitter(tweet_id)
        if thread:
            return thread

        raise ContentFetchError(
            "Unable to fetch Twitter thread. The tweet may be private, deleted, or Twitter is "
            "blocking access. Please ensure the tweet is public and try again."
        )


# Singleton instance
twitter_service = TwitterService()
