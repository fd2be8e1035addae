"""LLM dispatch across OpenAI, Anthropic and Google."""

import asyncio
import base64
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import httpx

from digestai.core.config import settings
from digestai.core.exceptions import ConfigurationError, InvalidInputError, LLMError
from digestai.core.logging import logger
from digestai.services.prompts import PromptMessages, build_vision_prompt

# Provider configurations
PROVIDERS: Dict[str, Dict] = {
    "openai": {
        "url": "https://api.openai.com/v1/chat/completions",
        "key_setting": "OPENAI_API_KEY",
        "label": "OpenAI",
        "prefixes": ("gpt-", "o1", "o3"),
    },
    "anthropic": {
        "url": "https://api.anthropic.com/v1/messages",
        "key_setting": "ANTHROPIC_API_KEY",
        "label": "Anthropic",
        "prefixes": ("claude-",),
    },
    "google": {
        "url": "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
        "key_setting": "GOOGLE_API_KEY",
        "label": "Google",
        "prefixes": ("gemini-",),
    },
}

ANTHROPIC_VERSION = "2023-06-01"
TEMPERATURE = 0.5
GENERIC_FAILURE = "Failed to generate summary. Please try again later."


@dataclass
class LLMResult:
    summary: str
    tokens_used: int
    model: str


@dataclass
class ImageInput:
    data: bytes
    mime_type: str
    file_name: str


def _is_reasoning_model(model: str) -> bool:
    # o-series models reject temperature and use max_completion_tokens
    return model.startswith(("o1", "o3"))


class LLMService:
    """Sends prompts to the provider that serves the requested model."""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        self.transport = transport
        self.max_retries = settings.LLM_MAX_RETRIES if max_retries is None else max_retries
        self.retry_base_delay = (
            settings.LLM_RETRY_BASE_DELAY if retry_base_delay is None else retry_base_delay
        )

    def resolve_model(self, model_string: str) -> Tuple[str, str]:
        """Return (provider, model) for a bare model id or a provider/model string."""
        requested_provider = None
        model = (model_string or "").strip()
        if "/" in model:
            requested_provider, model = model.split("/", 1)

        if model not in settings.ALLOWED_MODELS:
            raise InvalidInputError("Invalid model selected. Please choose a supported model.")

        for provider, config in PROVIDERS.items():
            if model.startswith(config["prefixes"]):
                if requested_provider and requested_provider != provider:
                    raise InvalidInputError(
                        f"Model '{model}' is not served by provider '{requested_provider}'."
                    )
                return provider, model

        raise InvalidInputError(f"Unsupported model: {model}")

    def _get_api_key(self, provider: str) -> str:
        key_setting = PROVIDERS[provider]["key_setting"]
        api_key = getattr(settings, key_setting, None)
        if not api_key:
            raise ConfigurationError(f"{key_setting} environment variable is not set")
        return api_key

    # ─── Request builders ──────────────────────────────────────────────────

    def _build_openai_request(self, model: str, prompt: PromptMessages, api_key: str) -> dict:
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
        }
        if _is_reasoning_model(model):
            payload["max_completion_tokens"] = prompt.max_tokens
        else:
            payload["temperature"] = TEMPERATURE
            payload["max_tokens"] = prompt.max_tokens

        return {
            "url": PROVIDERS["openai"]["url"],
            "headers": {"Authorization": f"Bearer {api_key}"},
            "params": None,
            "json": payload,
        }

    def _build_anthropic_request(self, model: str, prompt: PromptMessages, api_key: str) -> dict:
        return {
            "url": PROVIDERS["anthropic"]["url"],
            "headers": {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION},
            "params": None,
            "json": {
                "model": model,
                "max_tokens": prompt.max_tokens,
                "system": prompt.system,
                "messages": [{"role": "user", "content": prompt.user}],
            },
        }

    def _build_google_request(self, model: str, prompt: PromptMessages, api_key: str) -> dict:
        return {
            "url": PROVIDERS["google"]["url"].format(model=model),
            "headers": {},
            "params": {"key": api_key},
            "json": {
                "contents": [{"parts": [{"text": f"{prompt.system}\n\n{prompt.user}"}]}],
                "generationConfig": {
                    "temperature": TEMPERATURE,
                    "maxOutputTokens": prompt.max_tokens,
                },
            },
        }

    # ─── Response parsers ──────────────────────────────────────────────────

    def _parse_openai(self, data: dict) -> Tuple[str, int]:
        choices = data.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            raise LLMError("Invalid response from OpenAI API: missing content")
        return content, (data.get("usage") or {}).get("total_tokens", 0)

    def _parse_anthropic(self, data: dict) -> Tuple[str, int]:
        blocks = data.get("content") or []
        text = blocks[0].get("text") if blocks else None
        if not text:
            raise LLMError("Invalid response from Anthropic API: missing content")
        usage = data.get("usage") or {}
        return text, usage.get("input_tokens", 0) + usage.get("output_tokens", 0)

    def _parse_google(self, data: dict) -> Tuple[str, int]:
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise LLMError(f"Content blocked by Google API: {block_reason}")

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise LLMError("Invalid response from Google API: missing content")

        usage = data.get("usageMetadata") or {}
        return text, usage.get("promptTokenCount", 0) + usage.get("candidatesTokenCount", 0)

    # ─── Transport ─────────────────────────────────────────────────────────

    async def _post(self, provider: str, request: dict) -> dict:
        """POST to a provider with retry on 429."""
        label = PROVIDERS[provider]["label"]
        headers = {"Content-Type": "application/json", **request["headers"]}

        for attempt in range(self.max_retries + 1):
            async with httpx.AsyncClient(
                timeout=settings.LLM_TIMEOUT_SECONDS, transport=self.transport
            ) as client:
                try:
                    response = await client.post(
                        request["url"],
                        headers=headers,
                        params=request["params"],
                        json=request["json"],
                    )
                except httpx.HTTPError as e:
                    logger.error(f"{label} API request failed: {e}")
                    raise LLMError(GENERIC_FAILURE) from e

            if response.status_code == 200:
                return response.json()

            if response.status_code == 429 and attempt < self.max_retries:
                delay = self.retry_base_delay * (2 ** attempt)
                logger.warning(
                    f"{label} rate limited (429). Retry {attempt + 1}/{self.max_retries} in {delay}s..."
                )
                await asyncio.sleep(delay)
                continue

            logger.error(f"{label} API error ({response.status_code}): {response.text}")
            raise LLMError(GENERIC_FAILURE)

    async def generate(self, prompt: PromptMessages, model_string: str) -> LLMResult:
        """Generate a summary for an already-built prompt."""
        provider, model = self.resolve_model(model_string)
        api_key = self._get_api_key(provider)

        builders = {
            "openai": (self._build_openai_request, self._parse_openai),
            "anthropic": (self._build_anthropic_request, self._parse_anthropic),
            "google": (self._build_google_request, self._parse_google),
        }
        build, parse = builders[provider]

        logger.info(
            f"Summarizing via {provider} ({model}): "
            f"{len(prompt.user)} chars, max {prompt.max_tokens} tokens"
        )
        data = await self._post(provider, build(model, prompt, api_key))
        text, tokens = parse(data)

        return LLMResult(summary=text.strip(), tokens_used=tokens, model=model)

    async def generate_from_images(
        self, images: List[ImageInput], summary_length: str
    ) -> Tuple[str, LLMResult]:
        """OCR and summarize images in one vision call.

        Returns (extracted_text, result). The vision model is fixed to
        ``settings.VISION_MODEL`` regardless of the model the caller chose.
        """
        model = settings.VISION_MODEL
        api_key = self._get_api_key("openai")
        prompt = build_vision_prompt(summary_length)

        content = [{"type": "text", "text": prompt.user}]
        for image in images:
            encoded = base64.b64encode(image.data).decode("ascii")
            content.append({
                "type": "image_url",
                "image_url": {"url": f"data:{image.mime_type};base64,{encoded}", "detail": "high"},
            })

        request = {
            "url": PROVIDERS["openai"]["url"],
            "headers": {"Authorization": f"Bearer {api_key}"},
            "params": None,
            "json": {
                "model": model,
                "messages": [
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": content},
                ],
                "max_tokens": prompt.max_tokens,
            },
        }

        logger.info(f"Running vision OCR via openai ({model}) on {len(images)} image(s)")
        data = await self._post("openai", request)
        full_response, tokens = self._parse_openai(data)

        extracted_text, summary = split_vision_response(full_response)
        return extracted_text, LLMResult(summary=summary, tokens_used=tokens, model=model)


def split_vision_response(response: str) -> Tuple[str, str]:
    """Split a vision answer into its EXTRACTED TEXT and SUMMARY sections."""
    extracted = re.search(
        r"=== EXTRACTED TEXT ===\s*(.*?)\s*=== SUMMARY ===", response, re.IGNORECASE | re.DOTALL
    )
    summary = re.search(r"=== SUMMARY ===\s*(.*)$", response, re.IGNORECASE | re.DOTALL)

    extracted_text = extracted.group(1).strip() if extracted else ""
    summary_text = summary.group(1).strip() if summary else response.strip()
    return extracted_text, summary_text


# Singleton instance
llm_service = LLMService()
