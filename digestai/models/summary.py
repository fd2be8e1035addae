"""Summary model: one immutable record per completed summarization."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, String, Text, Integer, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from digestai.core.database import Base

SOURCE_TYPES = ("url", "text", "youtube", "pdf", "batch", "twitter", "reddit", "github", "image")
SUMMARY_LENGTHS = ("short", "medium", "long", "xl")


class Summary(Base):
    __tablename__ = "summaries"
    __table_args__ = (Index("ix_summaries_user_created", "user_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url: Mapped[str] = mapped_column(String(2000), nullable=True)
    source_type: Mapped[str] = mapped_column(
        Enum(*SOURCE_TYPES, name="summary_source_type"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(1000), nullable=True)
    input_content: Mapped[str] = mapped_column(Text, nullable=False)
    input_word_count: Mapped[int] = mapped_column(Integer, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    summary_length: Mapped[str] = mapped_column(
        Enum(*SUMMARY_LENGTHS, name="summary_length"), nullable=False
    )
    model: Mapped[str] = mapped_column(String(200), nullable=False)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # YouTube
    youtube_video_id: Mapped[str] = mapped_column(String(20), nullable=True)
    youtube_thumbnail: Mapped[str] = mapped_column(String(500), nullable=True)
    youtube_channel_name: Mapped[str] = mapped_column(String(500), nullable=True)
    youtube_duration: Mapped[str] = mapped_column(String(50), nullable=True)

    # PDF
    pdf_file_name: Mapped[str] = mapped_column(String(500), nullable=True)
    pdf_page_count: Mapped[int] = mapped_column(Integer, nullable=True)

    # Batch
    batch_urls: Mapped[list] = mapped_column(JSON, nullable=True)
    batch_count: Mapped[int] = mapped_column(Integer, nullable=True)

    # Twitter / X
    twitter_thread_id: Mapped[str] = mapped_column(String(50), nullable=True)
    twitter_author: Mapped[str] = mapped_column(String(255), nullable=True)
    twitter_author_handle: Mapped[str] = mapped_column(String(255), nullable=True)
    twitter_tweet_count: Mapped[int] = mapped_column(Integer, nullable=True)

    # Reddit
    reddit_post_id: Mapped[str] = mapped_column(String(50), nullable=True)
    reddit_subreddit: Mapped[str] = mapped_column(String(255), nullable=True)
    reddit_author: Mapped[str] = mapped_column(String(255), nullable=True)
    reddit_score: Mapped[int] = mapped_column(Integer, nullable=True)
    reddit_comment_count: Mapped[int] = mapped_column(Integer, nullable=True)

    # GitHub
    github_type: Mapped[str] = mapped_column(
        Enum("pr", "issue", name="github_item_type"), nullable=True
    )
    github_owner: Mapped[str] = mapped_column(String(255), nullable=True)
    github_repo: Mapped[str] = mapped_column(String(255), nullable=True)
    github_number: Mapped[int] = mapped_column(Integer, nullable=True)
    github_state: Mapped[str] = mapped_column(String(50), nullable=True)
    github_files_changed: Mapped[int] = mapped_column(Integer, nullable=True)

    # Images
    image_file_names: Mapped[list] = mapped_column(JSON, nullable=True)
    image_count: Mapped[int] = mapped_column(Integer, nullable=True)
    ocr_method: Mapped[str] = mapped_column(String(100), nullable=True)

    # Relationships
    user = relationship("User", back_populates="summaries")
