"""Summarization endpoints, one per source type."""

from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from digestai.core.config import settings
from digestai.core.database import get_db
from digestai.core.logging import logger
from digestai.dependencies import get_current_user
from digestai.models.user import User
from digestai.schemas import (
    BatchSummarizeRequest,
    SummarizeRequest,
    SummaryLength,
    UrlSummarizeRequest,
)
from digestai.services.llm_service import ImageInput
from digestai.services.pipeline import SummarizeResult, pipeline

router = APIRouter()

PDF_CONTENT_TYPES = ["application/pdf", "application/octet-stream"]


def _envelope(result: SummarizeResult, message: str = "Summary generated successfully") -> dict:
    return {
        "success": True,
        "message": message,
        "data": asdict(result),
    }


@router.post("/")
async def summarize(
    data: SummarizeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Summarize a web page (`url`) or pasted `text`. Exactly one is required."""
    result = await pipeline.summarize(
        db, current_user, data.summary_length, data.model, url=data.url, text=data.text
    )
    return _envelope(result)


@router.post("/preview")
async def summarize_preview(data: SummarizeRequest):
    """Summarize without an account. Nothing is stored or counted."""
    if not settings.ALLOW_ANONYMOUS_PREVIEW:
        raise HTTPException(status_code=404, detail="Not Found")

    result = await pipeline.summarize_preview(
        data.summary_length, data.model, url=data.url, text=data.text
    )
    return _envelope(result)


@router.post("/youtube")
async def summarize_youtube(
    data: UrlSummarizeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Summarize a YouTube video from its captions."""
    result = await pipeline.summarize_youtube(
        db, current_user, data.url, data.summary_length, data.model
    )
    return _envelope(result)


@router.post("/batch")
async def summarize_batch(
    data: BatchSummarizeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Summarize 2-10 web pages into one combined summary."""
    result = await pipeline.summarize_batch(
        db, current_user, data.urls, data.summary_length, data.model
    )
    return _envelope(result)


@router.post("/twitter")
async def summarize_twitter(
    data: UrlSummarizeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await pipeline.summarize_twitter(
        db, current_user, data.url, data.summary_length, data.model
    )
    return _envelope(result)


@router.post("/reddit")
async def summarize_reddit(
    data: UrlSummarizeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await pipeline.summarize_reddit(
        db, current_user, data.url, data.summary_length, data.model
    )
    return _envelope(result)


@router.post("/github")
async def summarize_github(
    data: UrlSummarizeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Summarize a GitHub pull request or issue with its discussion."""
    result = await pipeline.summarize_github(
        db, current_user, data.url, data.summary_length, data.model
    )
    return _envelope(result)


@router.post("/pdf")
async def summarize_pdf(
    file: UploadFile = File(...),
    summary_length: SummaryLength = Form("medium"),
    model: str = Form(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Upload a PDF file and get an AI-generated summary.

    - Extracts and cleans the text layer
    - Sends it to the chosen model
    - Stores the summary and counts it against the monthly quota
    """
    if not file.filename or not file.filename.lower().endswith(".pdf"):
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only PDF files are accepted.",
        )

    if file.content_type not in PDF_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid content type: {file.content_type}. Expected application/pdf.",
        )

    content = await file.read()
    logger.info(f"Summarizing PDF: {file.filename} ({len(content)} bytes)")

    result = await pipeline.summarize_pdf(
        db, current_user, content, file.filename, summary_length, model
    )
    return _envelope(result, "PDF summarized successfully")


@router.post("/image")
async def summarize_image(
    files: List[UploadFile] = File(...),
    summary_length: SummaryLength = Form("medium"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Extract text from 1-5 images and summarize it in one vision call."""
    images = [
        ImageInput(
            data=await upload.read(),
            mime_type=upload.content_type or "",
            file_name=upload.filename or "image",
        )
        for upload in files
    ]

    result = await pipeline.summarize_image(db, current_user, images, summary_length)
    return _envelope(result, "Images summarized successfully")
