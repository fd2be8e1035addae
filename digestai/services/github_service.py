"""GitHub pull request and issue fetching via the REST API."""

import asyncio
import re
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from digestai.core.config import settings
from digestai.core.exceptions import ContentFetchError
from digestai.core.logging import logger

GITHUB_API = "https://api.github.com"
GITHUB_PR_PATTERN = re.compile(r"github\.com/([^/]+)/([^/]+)/pull/(\d+)", re.IGNORECASE)
GITHUB_ISSUE_PATTERN = re.compile(r"github\.com/([^/]+)/([^/]+)/issues/(\d+)", re.IGNORECASE)


@dataclass
class GithubRef:
    type: str  # "pr" or "issue"
    owner: str
    repo: str
    number: int


@dataclass
class GithubComment:
    author: str
    body: str


@dataclass
class GithubItem:
    type: str
    owner: str
    repo: str
    number: int
    title: str
    body: str
    state: str
    author: str
    labels: List[str] = field(default_factory=list)
    comments: List[GithubComment] = field(default_factory=list)
    # Pull requests only
    files_changed: Optional[int] = None
    additions: int = 0
    deletions: int = 0
    commit_messages: List[str] = field(default_factory=list)

    @property
    def type_label(self) -> str:
        return "Pull Request" if self.type == "pr" else "Issue"

    def format(self) -> str:
        heading = "PULL REQUEST" if self.type == "pr" else "ISSUE"
        labels = ", ".join(self.labels) if self.labels else "None"

        lines = [
            f"=== {heading} #{self.number} ===",
            f"Title: {self.title}",
            f"Author: @{self.author}",
            f"State: {self.state}",
            f"Labels: {labels}",
        ]
        if self.type == "pr":
            lines.append(
                f"Files Changed: {self.files_changed} (+{self.additions} -{self.deletions})"
            )

        sections = ["\n".join(lines), f"=== DESCRIPTION ===\n{self.body or '(No description)'}"]
        if self.type == "pr":
            commits = "\n".join(f"- {msg.splitlines()[0] if msg else ''}" for msg in self.commit_messages)
            sections.append(f"=== COMMITS ({len(self.commit_messages)}) ===\n{commits}")

        comments = "\n\n---\n\n".join(f"@{c.author}:\n{c.body}" for c in self.comments)
        sections.append(f"=== COMMENTS ({len(self.comments)}) ===\n{comments}")
        return "\n\n".join(sections)


def parse_github_url(url: str) -> Optional[GithubRef]:
    for item_type, pattern in (("pr", GITHUB_PR_PATTERN), ("issue", GITHUB_ISSUE_PATTERN)):
        match = pattern.search(url or "")
        if match:
            return GithubRef(
                type=item_type, owner=match.group(1), repo=match.group(2), number=int(match.group(3))
            )
    return None


def _login(payload: Optional[dict]) -> str:
    return ((payload or {}).get("user") or {}).get("login") or "unknown"


class GithubService:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    def _headers(self) -> dict:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "DigestAI/1.0",
        }
        if settings.GITHUB_TOKEN:
            headers["Authorization"] = f"Bearer {settings.GITHUB_TOKEN}"
        return headers

    async def _get_optional_list(self, client: httpx.AsyncClient, url: str) -> list:
        """GET a list endpoint; failures degrade to an empty list."""
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"GitHub request failed ({url}): {e}")
            return []
        if response.status_code != 200:
            logger.warning(f"GitHub request returned {response.status_code}: {url}")
            return []
        data = response.json()
        return data if isinstance(data, list) else []

    async def fetch_item(self, ref: GithubRef) -> GithubItem:
        """Fetch a PR or issue with its comments (and commits for PRs)."""
        base = f"{GITHUB_API}/repos/{ref.owner}/{ref.repo}"
        main_url = f"{base}/pulls/{ref.number}" if ref.type == "pr" else f"{base}/issues/{ref.number}"
        not_found = (
            "Pull request not found. It may be private or deleted."
            if ref.type == "pr"
            else "Issue not found. It may be private or deleted."
        )
        what = "pull request" if ref.type == "pr" else "issue"

        logger.info(f"Fetching GitHub {ref.type}: {ref.owner}/{ref.repo}#{ref.number}")
        async with httpx.AsyncClient(
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            headers=self._headers(),
            transport=self.transport,
        ) as client:
            try:
                response = await client.get(main_url)
            except httpx.HTTPError as e:
                raise ContentFetchError(f"Failed to fetch {what}: {e}") from e

            if response.status_code == 404:
                raise ContentFetchError(not_found, status_code=404)
            if response.status_code != 200:
                raise ContentFetchError(f"Failed to fetch {what}: {response.status_code}")
            data = response.json()

            comments_url = f"{base}/issues/{ref.number}/comments?per_page=20"
            if ref.type == "pr":
                comments_data, commits_data = await asyncio.gather(
                    self._get_optional_list(client, comments_url),
                    self._get_optional_list(client, f"{base}/pulls/{ref.number}/commits?per_page=10"),
                )
            else:
                comments_data = await self._get_optional_list(client, comments_url)
                commits_data = []

        item = GithubItem(
            type=ref.type,
            owner=ref.owner,
            repo=ref.repo,
            number=ref.number,
            title=data.get("title") or "",
            body=data.get("body") or "",
            state=data.get("state") or "unknown",
            author=_login(data),
            labels=[label.get("name", "") for label in data.get("labels") or []],
            comments=[GithubComment(author=_login(c), body=c.get("body") or "") for c in comments_data],
        )
        if ref.type == "pr":
            item.files_changed = data.get("changed_files") or 0
            item.additions = data.get("additions") or 0
            item.deletions = data.get("deletions") or 0
            item.commit_messages = [
                ((c.get("commit") or {}).get("message") or "") for c in commits_data
            ]
        return item


# Singleton instance
github_service = GithubService()
