"""
OpenAI calls: dish identification (vision), blog text and the optional featured image.
"""
import logging
from typing import Optional

import httpx

from oksnap.core.config import GENERATION_TIMEOUT, VISION_TIMEOUT
from oksnap.core.errors import ConfigurationError, ExternalServiceError
from oksnap.services import prompts
from oksnap.services.blog_renderer import clean_generated_html

logger = logging.getLogger(__name__)

OPENAI_API_URL = "https://api.openai.com/v1"
VISION_MODEL = "gpt-4o"
TEXT_MODEL = "gpt-4o"
IMAGE_MODEL = "dall-e-3"


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:300] or "OpenAI API error"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return "OpenAI API error"


class OpenAIClient:
    def __init__(self, api_key: str, transport: Optional[httpx.AsyncBaseTransport] = None,
                 base_url: str = OPENAI_API_URL):
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        # Tests pass httpx.MockTransport here
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, body: dict, timeout: float) -> dict:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}{path}", json=body, headers=self._headers())
        except httpx.TimeoutException as e:
            logger.error("[OpenAI] Timeout calling %s: %s", path, e)
            raise ExternalServiceError(f"OpenAI {path} timed out", service="openai", timeout=True) from e
        except httpx.RequestError as e:
            logger.error("[OpenAI] Request to %s failed: %s", path, e)
            raise ExternalServiceError(f"OpenAI request failed: {e}", service="openai") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error("[OpenAI] %s returned %s: %s", path, response.status_code, message)
            raise ExternalServiceError(message, service="openai", upstream_status=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(f"OpenAI {path} returned invalid JSON", service="openai") from e

    async def identify_dish(self, image_data: str, target_language: Optional[str] = None) -> dict:
        """Raw chat-completion JSON; the dish JSON is in choices[0].message.content."""
        body = {
            "model": VISION_MODEL,
            "messages": prompts.build_identify_messages(image_data, target_language),
            "max_tokens": 800,
        }
        return await self._post("/chat/completions", body, timeout=VISION_TIMEOUT)

    async def generate_blog_post(self, dish) -> str:
        body = {
            "model": TEXT_MODEL,
            "messages": prompts.build_blog_messages(dish),
            "max_tokens": 2000,
            "temperature": 0.8,
        }
        data = await self._post("/chat/completions", body, timeout=GENERATION_TIMEOUT)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError("OpenAI returned no blog content", service="openai") from e
        return clean_generated_html(content)

    async def generate_blog_image(self, dish) -> Optional[str]:
        """Featured image URL, or None. The image is optional so failures never propagate."""
        body = {
            "model": IMAGE_MODEL,
            "prompt": prompts.build_image_prompt(dish),
            "size": "1024x1024",
            "quality": "standard",
            "n": 1,
        }
        try:
            data = await self._post("/images/generations", body, timeout=GENERATION_TIMEOUT)
            image_url = data["data"][0]["url"]
        except (ExternalServiceError, KeyError, IndexError, TypeError) as e:
            logger.warning("[OpenAI] Image generation failed, continuing without image: %s", e)
            return None
        logger.info("[OpenAI] Generated image for %s", dish.name)
        return image_url
