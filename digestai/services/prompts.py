"""Prompt construction for every source type.

Each source type contributes a role sentence, an optional context sentence,
a focus sentence, a user-prompt lead-in and a character budget. The summary
length picks the length instruction and the output-token budget.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from digestai.services.text_utils import truncate


@dataclass(frozen=True)
class LengthSpec:
    instruction: str
    max_tokens: int


SUMMARY_LENGTH_SPECS: Dict[str, LengthSpec] = {
    "short": LengthSpec(
        "Provide a brief summary in 2-3 sentences (approximately 50-75 words).",
        768,
    ),
    "medium": LengthSpec(
        "Provide a moderate summary in 1-2 paragraphs (approximately 150-200 words).",
        1536,
    ),
    "long": LengthSpec(
        "Provide a detailed summary covering all main points (approximately 300-400 words).",
        3072,
    ),
    "xl": LengthSpec(
        "Provide a comprehensive summary with key details and context (approximately 500-700 words).",
        6144,
    ),
}


@dataclass(frozen=True)
class SourcePrompt:
    role: str
    focus: str
    lead_in: str
    max_chars: int = 100_000
    truncation_marker: str = "[Content truncated...]"


SOURCE_PROMPTS: Dict[str, SourcePrompt] = {
    "url": SourcePrompt(
        role="You are an expert summarizer. Your task is to create clear, accurate, and well-structured summaries of content provided to you.",
        focus="Focus on the main ideas, key points, and important details. Maintain the original meaning and tone while making the summary accessible and easy to understand.",
        lead_in="Please summarize the following content:",
    ),
    "youtube": SourcePrompt(
        role="You are an expert summarizer specializing in video content.",
        focus=(
            "Your task is to create clear, accurate, and well-structured summaries of video transcripts. "
            "Focus on the main ideas, key points, and important details. "
            "Note that the input is a transcript which may contain minor transcription errors "
            "or lack punctuation - interpret the content intelligently."
        ),
        lead_in="Please summarize the following video transcript:",
        truncation_marker="[Transcript truncated...]",
    ),
    "pdf": SourcePrompt(
        role="You are an expert summarizer specializing in document content.",
        focus=(
            "Your task is to create clear, accurate, and well-structured summaries of PDF documents. "
            "Focus on the main ideas, key points, and important details. "
            "Note that the input is extracted text from a PDF which may have some formatting "
            "artifacts - interpret the content intelligently."
        ),
        lead_in="Please summarize the following PDF document content:",
        truncation_marker="[Document truncated...]",
    ),
    "batch": SourcePrompt(
        role="You are an expert summarizer.",
        focus=(
            "Create a cohesive summary that captures the key points from all sources. "
            "When content from different URLs relates to each other, synthesize the information. "
            "If the sources cover different topics, organize the summary by topic."
        ),
        lead_in="Please summarize the following content from multiple sources:",
    ),
    "twitter": SourcePrompt(
        role="You are an expert summarizer specializing in social media content.",
        focus=(
            "Focus on the main ideas, key arguments, and important takeaways. "
            "Maintain the original tone while making the summary accessible."
        ),
        lead_in="Please summarize the following Twitter thread:",
        max_chars=50_000,
        truncation_marker="[Thread truncated...]",
    ),
    "reddit": SourcePrompt(
        role="You are an expert summarizer specializing in online discussions.",
        focus=(
            "Summarize both the original post and the key points from the discussion. "
            "Highlight any consensus, disagreements, or valuable insights from the comments."
        ),
        lead_in="Please summarize the following Reddit post and discussion:",
        max_chars=80_000,
    ),
    "github": SourcePrompt(
        role="You are an expert summarizer specializing in software development discussions.",
        focus=(
            "Focus on: what the item is about, key changes or problems discussed, "
            "important decisions made, and current status. Be technical but accessible."
        ),
        lead_in="Please summarize the following GitHub item:",
        max_chars=80_000,
    ),
}
SOURCE_PROMPTS["text"] = SOURCE_PROMPTS["url"]

VISION_SYSTEM_PROMPT = (
    "You are an expert at extracting and summarizing text from images. "
    "First, extract all visible text from the provided image(s), preserving structure where possible. "
    "Then, {length_instruction} "
    "If the image contains diagrams, charts, or visual elements, describe them briefly. "
    "Format your response as:\n\n"
    "=== EXTRACTED TEXT ===\n[extracted text here]\n\n"
    "=== SUMMARY ===\n[summary here]"
)


@dataclass
class PromptMessages:
    system: str
    user: str
    max_tokens: int


def get_length_spec(summary_length: str) -> LengthSpec:
    if summary_length not in SUMMARY_LENGTH_SPECS:
        raise ValueError(
            f"Unknown summary length '{summary_length}'. "
            f"Supported: {', '.join(SUMMARY_LENGTH_SPECS)}"
        )
    return SUMMARY_LENGTH_SPECS[summary_length]


def build_prompt(
    source_type: str,
    content: str,
    summary_length: str,
    context: Optional[str] = None,
    lead_in: Optional[str] = None,
) -> PromptMessages:
    """Build the system/user messages for a summarization request.

    ``context`` is a sentence describing the specific item (e.g. the video
    title or the subreddit); ``lead_in`` overrides the source's default
    user-prompt opening line.
    """
    source = SOURCE_PROMPTS[source_type]
    length = get_length_spec(summary_length)

    parts = [source.role]
    if context:
        parts.append(context)
    parts.append(length.instruction)
    parts.append(source.focus)

    body = truncate(content, source.max_chars, source.truncation_marker)
    return PromptMessages(
        system=" ".join(parts),
        user=f"{lead_in or source.lead_in}\n\n{body}",
        max_tokens=length.max_tokens,
    )


def build_vision_prompt(summary_length: str) -> PromptMessages:
    length = get_length_spec(summary_length)
    instruction = length.instruction[0].lower() + length.instruction[1:]
    return PromptMessages(
        system=VISION_SYSTEM_PROMPT.format(length_instruction=instruction),
        user="Please extract text from and summarize the following image(s):",
        max_tokens=4000,
    )
