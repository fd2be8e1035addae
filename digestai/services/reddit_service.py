"""Reddit post and comment fetching via the public JSON API."""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import httpx

from digestai.core.config import settings
from digestai.core.exceptions import ContentFetchError
from digestai.core.logging import logger

REDDIT_URL_PATTERN = re.compile(r"reddit\.com/r/([^/]+)/comments/([^/?#]+)", re.IGNORECASE)
REDDIT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; DigestAI/1.0)",
    "Accept": "application/json",
}
MAX_COMMENTS = 20
MAX_COMMENT_DEPTH = 2
REMOVED_BODIES = {"[deleted]", "[removed]"}


@dataclass
class RedditComment:
    author: str
    body: str
    score: int


@dataclass
class RedditPost:
    post_id: str
    subreddit: str
    author: str
    title: str
    selftext: str
    score: int
    comment_count: int
    comments: List[RedditComment] = field(default_factory=list)

    def format(self) -> str:
        header = (
            "=== POST ===\n"
            f"Title: {self.title}\n"
            f"Author: u/{self.author}\n"
            f"Score: {self.score} points\n"
            f"Subreddit: r/{self.subreddit}\n\n"
        )
        body = f"{self.selftext}\n\n" if self.selftext else ""
        comments = "\n\n---\n\n".join(
            f"u/{c.author} ({c.score} points):\n{c.body}" for c in self.comments
        )
        return (
            f"{header}{body}"
            f"=== TOP COMMENTS ({len(self.comments)} of {self.comment_count} total) ===\n\n"
            f"{comments}"
        )


def parse_reddit_url(url: str) -> Optional[Tuple[str, str]]:
    """Return (subreddit, post_id) for a Reddit post URL."""
    match = REDDIT_URL_PATTERN.search(url or "")
    if match:
        return match.group(1), match.group(2)
    return None


def collect_comments(children: list, limit: int = MAX_COMMENTS) -> List[RedditComment]:
    """Walk the comment tree depth-first and return the top comments by score."""
    comments: List[RedditComment] = []

    def walk(nodes: list, depth: int) -> None:
        if depth > MAX_COMMENT_DEPTH:
            return
        for node in nodes:
            if len(comments) >= limit:
                return
            if node.get("kind") != "t1":
                continue
            data = node.get("data") or {}
            body = data.get("body")
            if not body or body in REMOVED_BODIES:
                continue

            comments.append(RedditComment(
                author=data.get("author") or "[deleted]",
                body=body,
                score=data.get("score") or 0,
            ))

            replies = data.get("replies")
            if isinstance(replies, dict):
                walk((replies.get("data") or {}).get("children") or [], depth + 1)

    walk(children, 0)
    comments.sort(key=lambda c: c.score, reverse=True)
    return comments[:limit]


class RedditService:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    async def fetch_post(self, subreddit: str, post_id: str) -> RedditPost:
        url = f"https://www.reddit.com/r/{subreddit}/comments/{post_id}.json"
        logger.info(f"Fetching Reddit post: r/{subreddit}/{post_id}")

        try:
            async with httpx.AsyncClient(
                timeout=settings.REQUEST_TIMEOUT_SECONDS,
                headers=REDDIT_HEADERS,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise ContentFetchError(f"Failed to fetch Reddit post: {e}") from e

        if response.status_code == 404:
            raise ContentFetchError(
                "Reddit post not found. It may be private or deleted.", status_code=404
            )
        if response.status_code != 200:
            raise ContentFetchError(f"Failed to fetch Reddit post: {response.status_code}")

        data = response.json()
        if not isinstance(data, list) or len(data) < 2:
            raise ContentFetchError("Invalid response from Reddit")

        try:
            post = data[0]["data"]["children"][0]["data"]
            comment_nodes = data[1]["data"]["children"]
        except (KeyError, IndexError, TypeError) as e:
            raise ContentFetchError("Invalid response from Reddit") from e

        return RedditPost(
            post_id=post_id,
            subreddit=subreddit,
            author=post.get("author") or "[deleted]",
            title=post.get("title") or "",
            selftext=post.get("selftext") or "",
            score=post.get("score") or 0,
            comment_count=post.get("num_comments") or 0,
            comments=collect_comments(comment_nodes),
        )


# Singleton instance
reddit_service = RedditService()
