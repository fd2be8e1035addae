import fitz
import pytest
from sqlalchemy import select

from digestai.core.config import settings
from digestai.core.exceptions import ContentFetchError, InvalidInputError, LLMError, UsageLimitError
from digestai.models.summary import Summary
from digestai.services import usage_service
from digestai.services.extract_service import ExtractService
from digestai.services.github_service import GithubService
from digestai.services.llm_service import ImageInput, LLMService
from digestai.services.pipeline import SummarizePipeline, normalize_batch_urls
from digestai.services.reddit_service import RedditService
from digestai.services.twitter_service import TwitterService
from digestai.services.youtube_service import YouTubeService

from helpers import openai_reply, request_json, words

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def page(title: str, body: str) -> str:
    return f"<html><head><title>{title}</title></head><body><article><p>{body}</p></article></body></html>"


@pytest.fixture
def pipeline(web):
    transport = web.transport
    return SummarizePipeline(
        llm=LLMService(transport=transport, retry_base_delay=0),
        extractor=ExtractService(transport=transport),
        youtube=YouTubeService(transport=transport),
        twitter=TwitterService(transport=transport),
        reddit=RedditService(transport=transport),
        github=GithubService(transport=transport),
    )


async def stored_summaries(db):
    return (await db.execute(select(Summary))).scalars().all()


def test_normalize_batch_urls():
    assert normalize_batch_urls([" example.com/a ", "http://b.org"]) == ["https://example.com/a", "http://b.org"]


async def test_summarize_url_persists_and_meters(db, user, web, pipeline):
    web.add("https://blog.example.com/post", text=page("Post title", words(80)))
    web.add(OPENAI_URL, openai_reply("Short summary.", 250))

    result = await pipeline.summarize(db, user, "short", url="https://blog.example.com/post")

    assert result.summary == "Short summary."
    assert result.title == "Post title"
    assert result.word_count == 80
    assert result.tokens_used == 250
    assert result.model == settings.DEFAULT_MODEL

    [summary] = await stored_summaries(db)
    assert str(summary.id) == result.summary_id
    assert summary.source_type == "url"
    assert summary.url == "https://blog.example.com/post"

    usage = await usage_service.get_usage(db, user.id)
    assert (usage.summary_count, usage.tokens_used) == (1, 250)


async def test_summarize_text(db, user, web, pipeline):
    web.add(OPENAI_URL, openai_reply("Text summary."))

    result = await pipeline.summarize(db, user, "medium", model="gpt-4o", text=words(60))

    assert result.title is None
    sent = request_json(web.requests[0])
    assert sent["model"] == "gpt-4o"
    assert sent["max_tokens"] == 1536
    [summary] = await stored_summaries(db)
    assert summary.source_type == "text"


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({}, "Either URL or text must be provided"),
        ({"url": "https://a.com", "text": "hello"}, "not both"),
        ({"text": words(10)}, "Content is too short to summarize"),
    ],
)
async def test_summarize_input_validation(db, user, web, pipeline, kwargs, message):
    web.add(OPENAI_URL, openai_reply("never"))
    with pytest.raises(InvalidInputError, match=message):
        await pipeline.summarize(db, user, "short", **kwargs)
    assert web.hits("api.openai.com") == 0


async def test_invalid_model_rejected_before_fetch(db, user, web, pipeline):
    with pytest.raises(InvalidInputError, match="Invalid model selected"):
        await pipeline.summarize(db, user, "short", model="gpt-2", url="https://blog.example.com/post")
    assert web.requests == []


async def test_gate_closed_stops_before_fetch(db, user, web, pipeline, monkeypatch):
    monkeypatch.setattr(settings, "FREE_TIER_LIMIT", 1)
    await usage_service.increment_usage(db, user.id, 5)

    with pytest.raises(UsageLimitError, match="Monthly limit reached"):
        await pipeline.summarize(db, user, "short", url="https://blog.example.com/post")

    assert web.requests == []
    assert await stored_summaries(db) == []


async def test_llm_failure_leaves_nothing_behind(db, user, web, pipeline):
    web.add(OPENAI_URL, status_code=500, text="boom")

    with pytest.raises(LLMError):
        await pipeline.summarize(db, user, "short", text=words(60))

    assert await stored_summaries(db) == []
    assert (await usage_service.get_usage(db, user.id)).summary_count == 0


async def test_preview_does_not_persist(db, user, web, pipeline):
    web.add(OPENAI_URL, openai_reply("Preview summary."))

    result = await pipeline.summarize_preview("short", text=words(60))

    assert result.summary == "Preview summary."
    assert result.summary_id is None
    assert await stored_summaries(db) == []


async def test_summarize_youtube(db, user, web, pipeline, monkeypatch):
    web.add(
        "https://www.youtube.com/oembed",
        json_body={"title": "Talk", "author_name": "Conf Channel"},
    )
    monkeypatch.setattr(pipeline.youtube, "_fetch_transcript_direct", _async_return(words(40, "speech")))
    web.add(OPENAI_URL, openai_reply("Video summary."))

    result = await pipeline.summarize_youtube(db, user, "https://youtu.be/dQw4w9WgXcQ", "long")

    assert result.metadata["channel_name"] == "Conf Channel"
    system_prompt = request_json(web.requests[-1])["messages"][0]["content"]
    assert 'titled: "Talk"' in system_prompt

    [summary] = await stored_summaries(db)
    assert summary.youtube_video_id == "dQw4w9WgXcQ"
    assert summary.youtube_channel_name == "Conf Channel"
    assert summary.youtube_thumbnail.endswith("maxresdefault.jpg")


async def test_summarize_youtube_invalid_url(db, user, pipeline):
    with pytest.raises(InvalidInputError, match="Invalid YouTube URL"):
        await pipeline.summarize_youtube(db, user, "https://vimeo.com/1", "short")


async def test_summarize_batch_captures_failures(db, user, web, pipeline):
    web.add("https://one.example.com/", text=page("One", words(30, "first")))
    web.add("https://two.example.com/", status_code=500, text="")
    web.add("https://three.example.com/", text=page("Three", words(30, "third")))
    web.add(OPENAI_URL, openai_reply("Batch summary."))

    result = await pipeline.summarize_batch(
        db, user, ["one.example.com/", "https://two.example.com/", "three.example.com/"], "medium"
    )

    assert result.title == "Batch Summary (2 URLs)"
    assert result.word_count == 60
    assert result.metadata["total_urls"] == 3
    assert result.metadata["successful_urls"] == 2
    assert result.metadata["failed_urls"] == [
        {"url": "https://two.example.com/", "error": "Failed to fetch URL (status 500)"}
    ]
    content = request_json(web.requests[-1])["messages"][1]["content"]
    assert "=== SOURCE 1: One ===\nURL: https://one.example.com/" in content
    assert "\n\n---\n\n=== SOURCE 2: Three ===" in content

    [summary] = await stored_summaries(db)
    assert summary.batch_urls == ["https://one.example.com/", "https://three.example.com/"]
    assert summary.batch_count == 2


async def test_summarize_batch_limits(db, user, pipeline):
    with pytest.raises(InvalidInputError, match="at least 2 URLs"):
        await pipeline.summarize_batch(db, user, ["https://a.com"], "short")
    with pytest.raises(InvalidInputError, match="Maximum 10 URLs"):
        await pipeline.summarize_batch(db, user, [f"https://a.com/{i}" for i in range(11)], "short")


async def test_summarize_batch_all_fail(db, user, web, pipeline):
    with pytest.raises(ContentFetchError, match="Failed to fetch content from any of the provided URLs."):
        await pipeline.summarize_batch(db, user, ["https://x.example/", "https://y.example/"], "short")


async def test_summarize_twitter(db, user, web, pipeline, monkeypatch):
    monkeypatch.setattr(settings, "NITTER_INSTANCES", ["nitter.test"])
    web.add(
        "https://nitter.test/i/status/777",
        text=(
            '<div class="main-tweet"><div class="tweet-header"><a class="fullname">Ada</a>'
            '<a class="username">@ada</a></div>'
            f'<div class="tweet-content">{words(15, "engines")}</div></div>'
        ),
    )
    web.add(OPENAI_URL, openai_reply("Thread summary."))

    result = await pipeline.summarize_twitter(db, user, "https://x.com/ada/status/777", "short")

    assert result.title == "Thread by @ada"
    assert result.metadata == {"author": "Ada", "author_handle": "ada", "tweet_count": 1}
    [summary] = await stored_summaries(db)
    assert (summary.twitter_thread_id, summary.twitter_tweet_count) == ("777", 1)


async def test_summarize_reddit(db, user, web, pipeline):
    post = {"title": "Ask me anything", "author": "host", "selftext": words(20, "question"), "score": 9, "num_comments": 0}
    web.add(
        "https://www.reddit.com/r/python/comments/p1.json",
        json_body=[{"data": {"children": [{"data": post}]}}, {"data": {"children": []}}],
    )
    web.add(OPENAI_URL, openai_reply("Reddit summary."))

    result = await pipeline.summarize_reddit(db, user, "https://www.reddit.com/r/python/comments/p1/ama/", "short")

    assert result.title == "Ask me anything"
    system_prompt = request_json(web.requests[-1])["messages"][0]["content"]
    assert 'r/python titled "Ask me anything" with 0 comments' in system_prompt
    [summary] = await stored_summaries(db)
    assert (summary.reddit_subreddit, summary.reddit_post_id, summary.reddit_score) == ("python", "p1", 9)


async def test_summarize_github_issue(db, user, web, pipeline):
    web.add(
        "https://api.github.com/repos/octo/app/issues/5",
        json_body={"title": "Crash on start", "body": words(12, "trace"), "state": "open", "user": {"login": "dev"}, "labels": []},
    )
    web.add("https://api.github.com/repos/octo/app/issues/5/comments", json_body=[])
    web.add(OPENAI_URL, openai_reply("Issue summary."))

    result = await pipeline.summarize_github(db, user, "https://github.com/octo/app/issues/5", "short")

    assert result.metadata["files_changed"] is None
    user_prompt = request_json(web.requests[-1])["messages"][1]["content"]
    assert user_prompt.startswith("Please summarize the following GitHub issue:")
    [summary] = await stored_summaries(db)
    assert (summary.github_type, summary.github_number, summary.github_files_changed) == ("issue", 5, None)


async def test_summarize_github_invalid_url(db, user, pipeline):
    with pytest.raises(InvalidInputError, match="Invalid GitHub URL"):
        await pipeline.summarize_github(db, user, "https://gitlab.com/a/b/-/issues/1", "short")


async def test_summarize_image(db, user, web, pipeline):
    web.add(
        OPENAI_URL,
        openai_reply("=== EXTRACTED TEXT ===\nMenu: soup, bread\n\n=== SUMMARY ===\nA short menu.", 700),
    )
    images = [ImageInput(data=b"png-bytes", mime_type="image/png", file_name="menu.png")]

    result = await pipeline.summarize_image(db, user, images, "short")

    assert result.title == "menu.png"
    assert result.summary == "A short menu."
    assert result.model == "gpt-4o"
    assert result.word_count == 3
    [summary] = await stored_summaries(db)
    assert summary.ocr_method == "gpt-4o-vision"
    assert summary.image_file_names == ["menu.png"]
    assert summary.input_content == "Menu: soup, bread"


async def test_summarize_two_images_title(db, user, web, pipeline):
    web.add(OPENAI_URL, openai_reply("no markers here"))
    images = [
        ImageInput(data=b"a", mime_type="image/jpeg", file_name="a.jpg"),
        ImageInput(data=b"b", mime_type="image/gif", file_name="b.gif"),
    ]

    result = await pipeline.summarize_image(db, user, images, "short")

    assert result.title == "2 Images"
    [summary] = await stored_summaries(db)
    assert summary.input_content == "Image content (no text extracted)"


async def test_summarize_image_rejects_bad_input_before_gate(db, user, web, pipeline, monkeypatch):
    monkeypatch.setattr(settings, "FREE_TIER_LIMIT", 0)

    with pytest.raises(InvalidInputError, match="at least one image"):
        await pipeline.summarize_image(db, user, [], "short")
    too_many = [ImageInput(data=b"x", mime_type="image/png", file_name=f"{i}.png") for i in range(6)]
    with pytest.raises(InvalidInputError, match="Maximum 5 images allowed."):
        await pipeline.summarize_image(db, user, too_many, "short")

    assert web.requests == []


async def test_summarize_pdf(db, user, web, pipeline):
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "\n".join([words(10, "contract")] * 6), fontsize=9)
    content = doc.tobytes()
    doc.close()
    web.add(OPENAI_URL, openai_reply("PDF summary."))

    result = await pipeline.summarize_pdf(db, user, content, "contract.pdf", "short")

    assert result.title == "contract.pdf"
    assert result.metadata["page_count"] == 1
    [summary] = await stored_summaries(db)
    assert (summary.pdf_file_name, summary.pdf_page_count) == ("contract.pdf", 1)


async def test_summarize_pdf_too_short(db, user, pipeline):
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "Only a handful of words.")
    content = doc.tobytes()
    doc.close()

    with pytest.raises(InvalidInputError, match="PDF content is too short"):
        await pipeline.summarize_pdf(db, user, content, "tiny.pdf", "short")


def _async_return(value):
    async def fake(*args, **kwargs):
        return value
    return fake
