import logging
from typing import Optional

from fastapi import Request
from openai import APIError, AsyncOpenAI

from .. import config

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """The extraction service gave no usable answer."""


class ExtractionClient:
    """
    Thin wrapper around an OpenAI-compatible chat completions endpoint
    (DeepSeek by default). One prompt in, raw completion text out.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else config.DEEPSEEK_API_KEY
        self.model = model or config.LLM_MODEL
        self.temperature = config.LLM_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or config.LLM_MAX_TOKENS
        self._client = None
        if self.api_key:
            # No retries: a failed call goes straight to the fallback survey
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=base_url or config.DEEPSEEK_BASE_URL,
                timeout=timeout or config.LLM_TIMEOUT_SECONDS,
                max_retries=0,
            )

    async def complete(self, prompt: str) -> str:
        if self._client is None:
            raise ExtractionError("Extraction API key not configured")

        logger.info("Sending prompt to %s (%d chars)", self.model, len(prompt))
        try:
            chat_completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except APIError as e:
            raise ExtractionError(f"Extraction API error: {e}") from e

        if chat_completion.usage:
            logger.info(
                "Token usage: prompt=%s completion=%s total=%s",
                chat_completion.usage.prompt_tokens,
                chat_completion.usage.completion_tokens,
                chat_completion.usage.total_tokens,
            )

        content = ""
        if chat_completion.choices:
            content = chat_completion.choices[0].message.content or ""
        if not content.strip():
            raise ExtractionError("No content returned from extraction API")
        return content

    async def close(self):
        if self._client is not None:
            await self._client.close()


def get_extractor(request: Request) -> ExtractionClient:
    return request.app.state.extractor
