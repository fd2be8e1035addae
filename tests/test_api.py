import fitz
import pytest
from sqlalchemy import func, select

from digestai.core.config import settings
from digestai.dependencies import create_access_token
from digestai.models.summary import Summary
from digestai.models.usage import Usage
from digestai.services.extract_service import ExtractService
from digestai.services.llm_service import LLMService
from digestai.services.pipeline import pipeline

from helpers import openai_reply, words

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


@pytest.fixture(autouse=True)
def fake_web(web, monkeypatch):
    monkeypatch.setattr(pipeline, "llm", LLMService(transport=web.transport, retry_base_delay=0))
    monkeypatch.setattr(pipeline, "extractor", ExtractService(transport=web.transport))
    web.add(OPENAI_URL, openai_reply("An API summary.", 77))
    return web


async def count_rows(session_maker, model):
    async with session_maker() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar()


async def summarize_text(client, headers, n_words=60):
    return await client.post(
        "/api/v1/summarize/",
        json={"text": words(n_words), "summary_length": "short"},
        headers=headers,
    )


async def test_health(client):
    assert (await client.get("/health")).json() == {"status": "healthy"}
    root = (await client.get("/")).json()
    assert root["version"] == settings.VERSION


async def test_requires_token(client):
    response = await client.get("/api/v1/users/me")
    assert response.status_code == 401

    response = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_first_request_creates_user(client, auth_headers):
    response = await client.get("/api/v1/users/me", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "alice@example.com"
    assert body["tier"] == "free"


async def test_update_me_name(client, auth_headers):
    response = await client.patch("/api/v1/users/me", json={"name": "Alice L."}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Alice L."
    assert response.json()["tier"] == "free"


async def test_update_me_cannot_change_tier(client, auth_headers):
    response = await client.patch(
        "/api/v1/users/me", json={"tier": "enterprise"}, headers=auth_headers
    )
    assert response.status_code == 422

    usage = (await client.get("/api/v1/usage/", headers=auth_headers)).json()
    assert usage["tier"] == "free"
    assert usage["limit"] == 10


async def test_summarize_text_end_to_end(client, auth_headers, session_maker):
    response = await summarize_text(client, auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["summary"] == "An API summary."
    assert data["word_count"] == 60
    assert data["tokens_used"] == 77

    listing = (await client.get("/api/v1/summaries/", headers=auth_headers)).json()
    assert [item["id"] for item in listing["items"]] == [data["summary_id"]]
    assert listing["has_more"] is False

    detail = (await client.get(f"/api/v1/summaries/{data['summary_id']}", headers=auth_headers)).json()
    assert detail["source_type"] == "text"
    assert detail["input_word_count"] == 60

    assert (await client.get("/api/v1/summaries/count", headers=auth_headers)).json() == {"count": 1}

    usage = (await client.get("/api/v1/usage/", headers=auth_headers)).json()
    assert usage["summary_count"] == 1
    assert usage["tokens_used"] == 77
    assert usage["remaining"] == settings.FREE_TIER_LIMIT - 1


async def test_domain_errors_use_envelope(client, auth_headers):
    response = await summarize_text(client, auth_headers, n_words=5)

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Invalid input",
        "message": "Content is too short to summarize (minimum 50 words)",
    }


async def test_unknown_summary_length_is_rejected(client, auth_headers):
    response = await client.post(
        "/api/v1/summarize/",
        json={"text": words(60), "summary_length": "huge"},
        headers=auth_headers,
    )
    assert response.status_code == 422


async def test_usage_limit_returns_429(client, auth_headers, monkeypatch, session_maker):
    monkeypatch.setattr(settings, "FREE_TIER_LIMIT", 1)
    assert (await summarize_text(client, auth_headers)).status_code == 200

    can = (await client.get("/api/v1/usage/can-summarize", headers=auth_headers)).json()
    assert can == {"allowed": False, "reason": "Monthly limit reached (1 summaries for free tier)"}

    response = await summarize_text(client, auth_headers)
    assert response.status_code == 429
    assert response.json()["error"] == "Usage limit reached"
    assert await count_rows(session_maker, Summary) == 1


async def test_llm_failure_rolls_back(client, auth_headers, fake_web, session_maker):
    fake_web.add(OPENAI_URL, status_code=500, text="provider down")

    response = await summarize_text(client, auth_headers)

    assert response.status_code == 502
    assert response.json()["message"] == "Failed to generate summary. Please try again later."
    assert await count_rows(session_maker, Summary) == 0
    assert await count_rows(session_maker, Usage) == 0


async def test_summaries_are_private(client, auth_headers):
    summary_id = (await summarize_text(client, auth_headers)).json()["data"]["summary_id"]
    bob = {"Authorization": f"Bearer {create_access_token('auth|bob', 'bob@example.com')}"}

    assert (await client.get(f"/api/v1/summaries/{summary_id}", headers=bob)).status_code == 403
    assert (await client.delete(f"/api/v1/summaries/{summary_id}", headers=bob)).status_code == 403
    assert (await client.get("/api/v1/summaries/", headers=bob)).json()["items"] == []

    assert (await client.delete(f"/api/v1/summaries/{summary_id}", headers=auth_headers)).status_code == 200
    assert (await client.get(f"/api/v1/summaries/{summary_id}", headers=auth_headers)).status_code == 404


async def test_preview_needs_no_account(client, session_maker, monkeypatch):
    response = await client.post("/api/v1/summarize/preview", json={"text": words(60)})
    assert response.status_code == 200
    assert response.json()["data"]["summary_id"] is None
    assert await count_rows(session_maker, Summary) == 0

    monkeypatch.setattr(settings, "ALLOW_ANONYMOUS_PREVIEW", False)
    response = await client.post("/api/v1/summarize/preview", json={"text": words(60)})
    assert response.status_code == 404


async def test_pdf_upload(client, auth_headers):
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "\n".join([words(10, "clause")] * 6), fontsize=9)
    content = doc.tobytes()
    doc.close()

    response = await client.post(
        "/api/v1/summarize/pdf",
        files={"file": ("terms.pdf", content, "application/pdf")},
        data={"summary_length": "short"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "terms.pdf"
    assert data["metadata"]["page_count"] == 1


async def test_pdf_upload_rejects_other_files(client, auth_headers):
    response = await client.post(
        "/api/v1/summarize/pdf",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers,
    )
    assert response.status_code == 400


async def test_image_upload(client, auth_headers, fake_web):
    fake_web.add(
        OPENAI_URL,
        openai_reply("=== EXTRACTED TEXT ===\nSlide one\n\n=== SUMMARY ===\nTwo slides.", 300),
    )

    response = await client.post(
        "/api/v1/summarize/image",
        files=[
            ("files", ("one.png", b"png-one", "image/png")),
            ("files", ("two.jpg", b"jpg-two", "image/jpeg")),
        ],
        data={"summary_length": "medium"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "2 Images"
    assert data["model"] == "gpt-4o"
    assert data["metadata"]["file_names"] == ["one.png", "two.jpg"]


async def test_image_upload_rejects_bad_type(client, auth_headers):
    response = await client.post(
        "/api/v1/summarize/image",
        files=[("files", ("scan.bmp", b"bmp", "image/bmp"))],
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert "Invalid image type: image/bmp" in response.json()["message"]
