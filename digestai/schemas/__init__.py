"""Pydantic schemas for request/response validation."""

from typing import Optional, List, Literal
from uuid import UUID
from datetime import datetime

from pydantic import BaseModel, Field

SummaryLength = Literal["short", "medium", "long", "xl"]


# ─── User ────────────────────────────────────────────────────────────────────

class UserResponse(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    tier: str
    created_at: datetime

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    """Self-service profile fields. Tier is set server-side only."""

    name: Optional[str] = None

    class Config:
        extra = "forbid"


# ─── Summarize requests ──────────────────────────────────────────────────────

class SummarizeOptions(BaseModel):
    summary_length: SummaryLength = "medium"
    model: Optional[str] = Field(
        default=None, description="Bare model id or provider/model. Defaults to server config."
    )


class SummarizeRequest(SummarizeOptions):
    url: Optional[str] = None
    text: Optional[str] = None


class UrlSummarizeRequest(SummarizeOptions):
    """YouTube, Twitter/X, Reddit and GitHub share this shape."""

    url: str


class BatchSummarizeRequest(SummarizeOptions):
    urls: List[str]


# ─── Summary history ─────────────────────────────────────────────────────────

class SummaryListItem(BaseModel):
    id: UUID
    source_type: str
    url: Optional[str] = None
    title: Optional[str] = None
    summary: str
    summary_length: str
    model: str
    input_word_count: int
    tokens_used: Optional[int] = None
    created_at: datetime
    youtube_thumbnail: Optional[str] = None
    image_count: Optional[int] = None
    batch_count: Optional[int] = None

    class Config:
        from_attributes = True


class SummaryResponse(SummaryListItem):
    input_content: str

    youtube_video_id: Optional[str] = None
    youtube_channel_name: Optional[str] = None
    youtube_duration: Optional[str] = None

    pdf_file_name: Optional[str] = None
    pdf_page_count: Optional[int] = None

    batch_urls: Optional[List[str]] = None

    twitter_thread_id: Optional[str] = None
    twitter_author: Optional[str] = None
    twitter_author_handle: Optional[str] = None
    twitter_tweet_count: Optional[int] = None

    reddit_post_id: Optional[str] = None
    reddit_subreddit: Optional[str] = None
    reddit_author: Optional[str] = None
    reddit_score: Optional[int] = None
    reddit_comment_count: Optional[int] = None

    github_type: Optional[str] = None
    github_owner: Optional[str] = None
    github_repo: Optional[str] = None
    github_number: Optional[int] = None
    github_state: Optional[str] = None
    github_files_changed: Optional[int] = None

    image_file_names: Optional[List[str]] = None
    ocr_method: Optional[str] = None


class SummaryListResponse(BaseModel):
    items: List[SummaryListItem]
    next_cursor: Optional[datetime] = None
    has_more: bool = False


class SummaryCountResponse(BaseModel):
    count: int


# ─── Usage ───────────────────────────────────────────────────────────────────

class UsageResponse(BaseModel):
    month: str
    summary_count: int
    tokens_used: int
    tier: str
    limit: Optional[int] = None
    remaining: Optional[int] = None


class CanSummarizeResponse(BaseModel):
    allowed: bool
    reason: Optional[str] = None
