"""YouTube video id parsing, oEmbed metadata and transcript fetching."""

import asyncio
import json
import re
from dataclasses import dataclass
from typing import List, Optional

import httpx
from youtube_transcript_api import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    TranscriptsDisabled,
    VideoUnavailable,
    YouTubeTranscriptApi,
)

from digestai.core.config import settings
from digestai.core.exceptions import ContentExtractionError, ContentFetchError, InvalidInputError
from digestai.core.logging import logger
from digestai.services.text_utils import BROWSER_HEADERS, collapse_whitespace

VIDEO_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{11}$")

YOUTUBE_URL_PATTERNS = [
    re.compile(r"(?:youtu\.be/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:youtube\.com/embed/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:youtube\.com/shorts/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:youtube\.com/live/)([a-zA-Z0-9_-]{11})"),
    # v= anywhere in the query string
    re.compile(r"(?:(?:www\.|m\.)?youtube\.com/watch\?(?:[^&]*&)*v=)([a-zA-Z0-9_-]{11})"),
]


THUMBNAIL_QUALITIES = {
    "default": "default",
    "medium": "mqdefault",
    "high": "hqdefault",
    "standard": "sddefault",
    "maxres": "maxresdefault",
}

CAPTION_TRACKS_RE = re.compile(r'"captionTracks":\s*(\[.*?\])', re.DOTALL)
MIN_TRANSCRIPT_CHARS = 10
PREFERRED_LANGUAGES = ["en", "en-US", "en-GB"]


@dataclass
class YouTubeMetadata:
    video_id: str
    title: str
    channel_name: str
    thumbnail: str


def extract_video_id(url: str) -> Optional[str]:
    """Return the 11-character video id for a YouTube URL or bare id, else None."""
    if not url or not isinstance(url, str):
        return None

    candidate = url.strip()
    if VIDEO_ID_RE.match(candidate):
        return candidate

    for pattern in YOUTUBE_URL_PATTERNS:
        match = pattern.search(candidate)
        if match:
            return match.group(1)

    return None


def _validate_video_id(video_id: str) -> None:
    if not video_id or not isinstance(video_id, str):
        raise InvalidInputError("Invalid video ID provided")
    if not VIDEO_ID_RE.match(video_id):
        raise InvalidInputError("Invalid video ID format")


def get_thumbnail_url(video_id: str, quality: str = "maxres") -> str:
    _validate_video_id(video_id)
    return f"https://img.youtube.com/vi/{video_id}/{THUMBNAIL_QUALITIES[quality]}.jpg"


def extract_caption_tracks(html: str) -> List[dict]:
    """Pull the captionTracks list out of a watch page's player response."""
    match = CAPTION_TRACKS_RE.search(html)
    if not match:
        return []
    try:
        tracks = json.loads(match.group(1).replace("\\u0026", "&"))
    except json.JSONDecodeError:
        return []
    return tracks if isinstance(tracks, list) else []


def select_caption_track(tracks: List[dict]) -> Optional[dict]:
    """English manual captions, then English auto-generated, then any manual, then first."""
    if not tracks:
        return None

    preferences = [
        lambda t: t.get("languageCode") == "en" and t.get("kind") != "asr",
        lambda t: t.get("languageCode") == "en" and t.get("kind") == "asr",
        lambda t: t.get("kind") != "asr",
    ]
    for matches in preferences:
        for track in tracks:
            if matches(track):
                return track
    return tracks[0]


def join_json3_events(data: dict) -> str:
    """Concatenate the text segments of a json3 timed-text document."""
    events = data.get("events")
    if not isinstance(events, list):
        return ""

    parts = []
    for event in events:
        for seg in event.get("segs") or []:
            if seg.get("utf8"):
                parts.append(seg["utf8"])

    return collapse_whitespace(" ".join(parts))


class YouTubeService:
    """Fetches video metadata and transcripts without a Data API key."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=settings.REQUEST_TIMEOUT_SECONDS, transport=self.transport, **kwargs
        )

    async def fetch_metadata(self, video_id: str) -> YouTubeMetadata:
        """Title and channel name via the oEmbed endpoint."""
        _validate_video_id(video_id)

        params = {"url": f"https://www.youtube.com/watch?v={video_id}", "format": "json"}
        try:
            async with self._client() as client:
                response = await client.get("https://www.youtube.com/oembed", params=params)
        except httpx.HTTPError as e:
            raise ContentFetchError(f"Failed to fetch video metadata: {e}") from e

        if response.status_code == 404:
            raise ContentFetchError("Video not found or is private", status_code=404)
        if response.status_code == 401:
            raise ContentFetchError("Video is not embeddable", status_code=400)
        if response.status_code != 200:
            raise ContentFetchError(
                f"Failed to fetch video metadata: {response.reason_phrase}"
            )

        data = response.json()
        if not data.get("title") or not data.get("author_name"):
            raise ContentFetchError("Invalid response from YouTube oEmbed API")

        return YouTubeMetadata(
            video_id=video_id,
            title=data["title"],
            channel_name=data["author_name"],
            thumbnail=get_thumbnail_url(video_id),
        )

    async def _fetch_transcript_direct(self, video_id: str) -> Optional[str]:
        """Scrape caption tracks from the watch page and download one as json3."""
        try:
            async with self._client(headers=BROWSER_HEADERS, follow_redirects=True) as client:
                page = await client.get(f"https://www.youtube.com/watch?v={video_id}")
                if page.status_code != 200:
                    return None

                track = select_caption_track(extract_caption_tracks(page.text))
                if not track or not track.get("baseUrl"):
                    return None

                timed_text = await client.get(f"{track['baseUrl']}&fmt=json3")
                if timed_text.status_code != 200:
                    return None

                data = timed_text.json()
                if not isinstance(data, dict):
                    return None
                transcript = join_json3_events(data)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Direct transcript fetch failed for {video_id}: {e}")
            return None

        return transcript or None

    def _fetch_transcript_with_library(self, video_id: str) -> str:
        """Blocking fallback through youtube-transcript-api."""
        api = YouTubeTranscriptApi()
        try:
            fetched = api.fetch(video_id, languages=PREFERRED_LANGUAGES)
        except NoTranscriptFound:
            # Any language is better than nothing
            transcript = next(iter(api.list(video_id)), None)
            if transcript is None:
                raise
            fetched = transcript.fetch()

        return collapse_whitespace(" ".join(snippet.text for snippet in fetched))

    async def fetch_transcript(self, video_id: str) -> str:
        """Full transcript as one string; direct scrape first, library second."""
        _validate_video_id(video_id)

        transcript = await self._fetch_transcript_direct(video_id)
        if transcript and len(transcript) > MIN_TRANSCRIPT_CHARS:
            return transcript

        logger.info(f"Falling back to youtube-transcript-api for {video_id}")
        try:
            transcript = await asyncio.to_thread(self._fetch_transcript_with_library, video_id)
        except (TranscriptsDisabled, NoTranscriptFound) as e:
            raise ContentExtractionError(
                "Captions are disabled for this video or no captions are available"
            ) from e
        except VideoUnavailable as e:
            raise ContentFetchError("Video not found or is unavailable", status_code=404) from e
        except CouldNotRetrieveTranscript as e:
            message = str(e).lower()
            if "private" in message:
                raise ContentFetchError("Cannot fetch transcript: video is private") from e
            if "age" in message:
                raise ContentFetchError("Cannot fetch transcript: video is age-restricted") from e
            raise ContentFetchError("Failed to fetch YouTube transcript") from e

        if not transcript:
            raise ContentExtractionError("No transcript available for this video")
        return transcript


# Singleton instance
youtube_service = YouTubeService()
