"""Summarization pipeline, one entry point per source type.

Every entry point runs the same sequence:

    validate input -> usage gate -> fetch + extract -> LLM -> persist + meter

Persisting the summary and incrementing usage only flush; the request's
session commits both together (see ``core.database.get_db``).
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from digestai.core.config import settings
from digestai.core.exceptions import ContentFetchError, DigestError, InvalidInputError, UsageLimitError
from digestai.core.logging import logger
from digestai.models.user import User
from digestai.services import summary_service, usage_service
from digestai.services.extract_service import ExtractService, extract_service
from digestai.services.github_service import GithubService, github_service, parse_github_url
from digestai.services.image_service import validate_images
from digestai.services.llm_service import ImageInput, LLMResult, LLMService, llm_service
from digestai.services.pdf_service import PDFService, pdf_service
from digestai.services.prompts import build_prompt, get_length_spec
from digestai.services.reddit_service import RedditService, parse_reddit_url, reddit_service
from digestai.services.text_utils import count_words
from digestai.services.twitter_service import TwitterService, parse_twitter_url, twitter_service
from digestai.services.youtube_service import YouTubeService, extract_video_id, youtube_service

MAX_WORDS = 100_000
MIN_WORDS = 50
MIN_BATCH_URLS = 2
MAX_BATCH_URLS = 10
OCR_METHOD = "gpt-4o-vision"


@dataclass
class SummarizeResult:
    summary: str
    word_count: int
    tokens_used: int
    model: str
    title: Optional[str] = None
    summary_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchFetchResult:
    url: str
    success: bool
    title: str = ""
    content: str = ""
    word_count: int = 0
    error: Optional[str] = None


def normalize_batch_urls(urls: List[str]) -> List[str]:
    """Strip entries and add https:// to scheme-less ones."""
    normalized = []
    for url in urls:
        trimmed = url.strip()
        if not trimmed.startswith(("http://", "https://")):
            trimmed = f"https://{trimmed}"
        normalized.append(trimmed)
    return normalized


def _check_word_bounds(word_count: int, too_short: str, too_long: Optional[str] = None,
                       minimum: int = MIN_WORDS) -> None:
    if word_count < minimum:
        raise InvalidInputError(too_short)
    if too_long and word_count > MAX_WORDS:
        raise InvalidInputError(too_long)


class SummarizePipeline:
    """Glue between fetchers, the LLM dispatcher and persistence."""

    def __init__(
        self,
        llm: LLMService = llm_service,
        extractor: ExtractService = extract_service,
        youtube: YouTubeService = youtube_service,
        pdf: PDFService = pdf_service,
        twitter: TwitterService = twitter_service,
        reddit: RedditService = reddit_service,
        github: GithubService = github_service,
    ):
        self.llm = llm
        self.extractor = extractor
        self.youtube = youtube
        self.pdf = pdf
        self.twitter = twitter
        self.reddit = reddit
        self.github = github

    # ─── Shared steps ──────────────────────────────────────────────────────

    def _validate_options(self, summary_length: str, model: Optional[str]) -> str:
        """Reject a bad length or model before anything is fetched."""
        try:
            get_length_spec(summary_length)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e
        model = model or settings.DEFAULT_MODEL
        self.llm.resolve_model(model)
        return model

    async def _check_gate(self, db: AsyncSession, user: User) -> None:
        check = await usage_service.can_summarize(db, user)
        if not check.allowed:
            logger.info(f"Usage gate closed for user {user.id}: {check.reason}")
            raise UsageLimitError(check.reason or "Cannot summarize at this time")

    async def _persist(
        self,
        db: AsyncSession,
        user: User,
        result: LLMResult,
        *,
        source_type: str,
        summary_length: str,
        content: str,
        word_count: int,
        title: Optional[str],
        url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **columns,
    ) -> SummarizeResult:
        summary = await summary_service.create_summary(
            db,
            user.id,
            url=url,
            source_type=source_type,
            title=title,
            input_content=content,
            input_word_count=word_count,
            summary=result.summary,
            summary_length=summary_length,
            model=result.model,
            tokens_used=result.tokens_used,
            **columns,
        )
        await usage_service.increment_usage(db, user.id, result.tokens_used)

        return SummarizeResult(
            summary_id=str(summary.id),
            summary=result.summary,
            title=title,
            word_count=word_count,
            tokens_used=result.tokens_used,
            model=result.model,
            metadata=metadata or {},
        )

    async def _read_url_or_text(self, url: Optional[str], text: Optional[str]):
        """Returns (content, title, word_count) for the url/text sources."""
        if url:
            extracted = await self.extractor.extract_from_url(url)
            content, title, word_count = extracted.text, extracted.title, extracted.word_count
        else:
            content, title, word_count = text, None, count_words(text)

        _check_word_bounds(
            word_count,
            "Content is too short to summarize (minimum 50 words)",
            "Content is too long to summarize (maximum 100,000 words)",
        )
        return content, title, word_count

    @staticmethod
    def _require_one_of(url: Optional[str], text: Optional[str]) -> None:
        if not url and not (text and text.strip()):
            raise InvalidInputError("Either URL or text must be provided")
        if url and text:
            raise InvalidInputError("Provide either a URL or text, not both")

    # ─── URL / text ────────────────────────────────────────────────────────

    async def summarize(
        self,
        db: AsyncSession,
        user: User,
        summary_length: str,
        model: Optional[str] = None,
        url: Optional[str] = None,
        text: Optional[str] = None,
    ) -> SummarizeResult:
        self._require_one_of(url, text)
        model = self._validate_options(summary_length, model)
        await self._check_gate(db, user)

        content, title, word_count = await self._read_url_or_text(url, text)
        source_type = "url" if url else "text"

        result = await self.llm.generate(build_prompt(source_type, content, summary_length), model)
        return await self._persist(
            db, user, result,
            source_type=source_type,
            summary_length=summary_length,
            content=content,
            word_count=word_count,
            title=title,
            url=url,
        )

    async def summarize_preview(
        self,
        summary_length: str,
        model: Optional[str] = None,
        url: Optional[str] = None,
        text: Optional[str] = None,
    ) -> SummarizeResult:
        """Anonymous summary: no gate, nothing stored or metered."""
        self._require_one_of(url, text)
        model = self._validate_options(summary_length, model)

        content, title, word_count = await self._read_url_or_text(url, text)
        source_type = "url" if url else "text"

        result = await self.llm.generate(build_prompt(source_type, content, summary_length), model)
        return SummarizeResult(
            summary=result.summary,
            title=title,
            word_count=word_count,
            tokens_used=result.tokens_used,
            model=result.model,
        )

    # ─── YouTube ───────────────────────────────────────────────────────────

    async def summarize_youtube(
        self,
        db: AsyncSession,
        user: User,
        url: str,
        summary_length: str,
        model: Optional[str] = None,
    ) -> SummarizeResult:
        video_id = extract_video_id(url)
        if not video_id:
            raise InvalidInputError("Invalid YouTube URL. Please provide a valid YouTube video URL.")
        model = self._validate_options(summary_length, model)
        await self._check_gate(db, user)

        metadata = await self.youtube.fetch_metadata(video_id)
        transcript = await self.youtube.fetch_transcript(video_id)

        word_count = count_words(transcript)
        _check_word_bounds(
            word_count,
            "Transcript is too short to summarize. The video may not have meaningful captions.",
            "Transcript is too long to summarize (maximum 100,000 words). Please try a shorter video.",
            minimum=10,
        )

        prompt = build_prompt(
            "youtube", transcript, summary_length,
            context=f'You are summarizing a YouTube video titled: "{metadata.title}".',
        )
        result = await self.llm.generate(prompt, model)

        return await self._persist(
            db, user, result,
            source_type="youtube",
            summary_length=summary_length,
            content=transcript,
            word_count=word_count,
            title=metadata.title,
            url=url,
            metadata={
                "title": metadata.title,
                "channel_name": metadata.channel_name,
                "thumbnail": metadata.thumbnail,
            },
            youtube_video_id=video_id,
            youtube_thumbnail=metadata.thumbnail,
            youtube_channel_name=metadata.channel_name,
        )

    # ─── Batch ─────────────────────────────────────────────────────────────

    async def _fetch_batch_url(self, url: str) -> BatchFetchResult:
        """Fetch one batch URL; failures are captured, never raised."""
        timeout = settings.BATCH_URL_TIMEOUT_SECONDS
        try:
            extracted = await asyncio.wait_for(
                self.extractor.extract_from_url(url, timeout=timeout), timeout=timeout
            )
        except asyncio.TimeoutError:
            return BatchFetchResult(url=url, success=False, error="Request timed out")
        except DigestError as e:
            logger.warning(f"Batch URL failed: {url} ({e.message})")
            return BatchFetchResult(url=url, success=False, error=e.message)

        return BatchFetchResult(
            url=url,
            success=True,
            title=extracted.title,
            content=extracted.text,
            word_count=extracted.word_count,
        )

    async def summarize_batch(
        self,
        db: AsyncSession,
        user: User,
        urls: List[str],
        summary_length: str,
        model: Optional[str] = None,
    ) -> SummarizeResult:
        if len(urls) < MIN_BATCH_URLS:
            raise InvalidInputError("Please provide at least 2 URLs for batch summarization.")
        if len(urls) > MAX_BATCH_URLS:
            raise InvalidInputError("Maximum 10 URLs allowed for batch summarization.")
        model = self._validate_options(summary_length, model)
        await self._check_gate(db, user)

        normalized = normalize_batch_urls(urls)
        logger.info(f"Fetching {len(normalized)} URLs...")
        results = await asyncio.gather(*(self._fetch_batch_url(url) for url in normalized))

        succeeded = [r for r in results if r.success]
        failed = [r for r in results if not r.success]
        if not succeeded:
            raise ContentFetchError("Failed to fetch content from any of the provided URLs.")

        combined = "\n\n---\n\n".join(
            f"=== SOURCE {i}: {r.title} ===\nURL: {r.url}\n\n{r.content}"
            for i, r in enumerate(succeeded, start=1)
        )
        word_count = sum(r.word_count for r in succeeded)
        _check_word_bounds(word_count, "Combined content is too short to summarize (minimum 50 words).")

        prompt = build_prompt(
            "batch", combined, summary_length,
            context=f"You are summarizing content from {len(succeeded)} different web pages.",
        )
        result = await self.llm.generate(prompt, model)

        return await self._persist(
            db, user, result,
            source_type="batch",
            summary_length=summary_length,
            content=combined,
            word_count=word_count,
            title=f"Batch Summary ({len(succeeded)} URLs)",
            metadata={
                "total_urls": len(urls),
                "successful_urls": len(succeeded),
                "failed_urls": [{"url": r.url, "error": r.error or "Unknown error"} for r in failed],
                "titles": [r.title for r in succeeded],
            },
            batch_urls=[r.url for r in succeeded],
            batch_count=len(succeeded),
        )

    # ─── Twitter / X ───────────────────────────────────────────────────────

    async def summarize_twitter(
        self,
        db: AsyncSession,
        user: User,
        url: str,
        summary_length: str,
        model: Optional[str] = None,
    ) -> SummarizeResult:
        ref = parse_twitter_url(url)
        if not ref:
            raise InvalidInputError("Invalid Twitter/X URL. Please provide a valid tweet URL.")
        model = self._validate_options(summary_length, model)
        await self._check_gate(db, user)

        logger.info(f"Fetching Twitter thread: {ref.tweet_id}")
        thread = await self.twitter.fetch_thread(ref.tweet_id)
        content = thread.format()
        word_count = count_words(content)
        _check_word_bounds(word_count, "Thread content is too short to summarize.", minimum=10)

        prompt = build_prompt(
            "twitter", content, summary_length,
            context=(
                f"You are summarizing a Twitter/X thread by @{thread.author} "
                f"containing {len(thread.tweets)} tweets."
            ),
        )
        result = await self.llm.generate(prompt, model)

        return await self._persist(
            db, user, result,
            source_type="twitter",
            summary_length=summary_length,
            content=content,
            word_count=word_count,
            title=f"Thread by @{thread.author_handle}",
            url=url,
            metadata={
                "author": thread.author,
                "author_handle": thread.author_handle,
                "tweet_count": len(thread.tweets),
            },
            twitter_thread_id=thread.tweet_id,
            twitter_author=thread.author,
            twitter_author_handle=thread.author_handle,
            twitter_tweet_count=len(thread.tweets),
        )

    # ─── Reddit ────────────────────────────────────────────────────────────

    async def summarize_reddit(
        self,
        db: AsyncSession,
        user: User,
        url: str,
        summary_length: str,
        model: Optional[str] = None,
    ) -> SummarizeResult:
        parsed = parse_reddit_url(url)
        if not parsed:
            raise InvalidInputError("Invalid Reddit URL. Please provide a link to a Reddit post.")
        model = self._validate_options(summary_length, model)
        await self._check_gate(db, user)

        subreddit, post_id = parsed
        post = await self.reddit.fetch_post(subreddit, post_id)
        content = post.format()
        word_count = count_words(content)
        _check_word_bounds(word_count, "Post content is too short to summarize.", minimum=20)

        prompt = build_prompt(
            "reddit", content, summary_length,
            context=(
                f'You are summarizing a Reddit post from r/{post.subreddit} titled '
                f'"{post.title}" with {post.comment_count} comments.'
            ),
        )
        result = await self.llm.generate(prompt, model)

        return await self._persist(
            db, user, result,
            source_type="reddit",
            summary_length=summary_length,
            content=content,
            word_count=word_count,
            title=post.title,
            url=url,
            metadata={
                "title": post.title,
                "subreddit": post.subreddit,
                "author": post.author,
                "score": post.score,
                "comment_count": post.comment_count,
            },
            reddit_post_id=post.post_id,
            reddit_subreddit=post.subreddit,
            reddit_author=post.author,
            reddit_score=post.score,
            reddit_comment_count=post.comment_count,
        )

    # ─── GitHub ────────────────────────────────────────────────────────────

    async def summarize_github(
        self,
        db: AsyncSession,
        user: User,
        url: str,
        summary_length: str,
        model: Optional[str] = None,
    ) -> SummarizeResult:
        ref = parse_github_url(url)
        if not ref:
            raise InvalidInputError(
                "Invalid GitHub URL. Please provide a link to a GitHub Pull Request or Issue."
            )
        model = self._validate_options(summary_length, model)
        await self._check_gate(db, user)

        item = await self.github.fetch_item(ref)
        content = item.format()
        word_count = count_words(content)
        _check_word_bounds(word_count, "Content is too short to summarize.", minimum=10)

        prompt = build_prompt(
            "github", content, summary_length,
            context=f"You are summarizing a GitHub {item.type_label} from {item.owner}/{item.repo}.",
            lead_in=f"Please summarize the following GitHub {item.type_label.lower()}:",
        )
        result = await self.llm.generate(prompt, model)

        files_changed = item.files_changed if item.type == "pr" else None
        return await self._persist(
            db, user, result,
            source_type="github",
            summary_length=summary_length,
            content=content,
            word_count=word_count,
            title=item.title,
            url=url,
            metadata={
                "type": item.type,
                "owner": item.owner,
                "repo": item.repo,
                "number": item.number,
                "title": item.title,
                "state": item.state,
                "files_changed": files_changed,
            },
            github_type=item.type,
            github_owner=item.owner,
            github_repo=item.repo,
            github_number=item.number,
            github_state=item.state,
            github_files_changed=files_changed,
        )

    # ─── Images ────────────────────────────────────────────────────────────

    async def summarize_image(
        self,
        db: AsyncSession,
        user: User,
        images: List[ImageInput],
        summary_length: str,
    ) -> SummarizeResult:
        """OCR + summary through the vision model; the caller's model choice does not apply."""
        total_mb = validate_images(images)
        self._validate_options(summary_length, settings.VISION_MODEL)
        await self._check_gate(db, user)

        logger.info(f"Processing {len(images)} images ({total_mb:.1f}MB total)")

        extracted_text, result = await self.llm.generate_from_images(images, summary_length)

        file_names = [image.file_name for image in images]
        title = file_names[0] if len(images) == 1 else f"{len(images)} Images"
        return await self._persist(
            db, user, result,
            source_type="image",
            summary_length=summary_length,
            content=extracted_text or "Image content (no text extracted)",
            word_count=count_words(extracted_text or result.summary),
            title=title,
            metadata={
                "image_count": len(images),
                "file_names": file_names,
                "extracted_text": extracted_text,
            },
            image_file_names=file_names,
            image_count=len(images),
            ocr_method=OCR_METHOD,
        )

    # ─── PDF ───────────────────────────────────────────────────────────────

    async def summarize_pdf(
        self,
        db: AsyncSession,
        user: User,
        pdf_content: bytes,
        file_name: str,
        summary_length: str,
        model: Optional[str] = None,
    ) -> SummarizeResult:
        model = self._validate_options(summary_length, model)
        await self._check_gate(db, user)

        document = await asyncio.to_thread(self.pdf.extract, pdf_content)
        _check_word_bounds(
            document.word_count,
            "PDF content is too short to summarize (minimum 50 words). "
            "The PDF may contain mostly images or have no extractable text.",
            "PDF content is too long to summarize (maximum 100,000 words). "
            "Please try a shorter document.",
        )

        display_title = document.title or file_name
        prompt = build_prompt(
            "pdf", document.text, summary_length,
            context=f'You are summarizing a PDF document titled: "{display_title}".',
        )
        result = await self.llm.generate(prompt, model)

        return await self._persist(
            db, user, result,
            source_type="pdf",
            summary_length=summary_length,
            content=document.text,
            word_count=document.word_count,
            title=display_title,
            metadata={
                "file_name": file_name,
                "page_count": document.page_count,
                "title": document.title,
                "author": document.author,
            },
            pdf_file_name=file_name,
            pdf_page_count=document.page_count,
        )


# Singleton instance
pipeline = SummarizePipeline()
