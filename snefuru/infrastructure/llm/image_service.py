"""
Image Service - AI Image Generation
====================================

ARCHITECTURAL DECISION:
- OpenAI Images API (DALL-E 3) is called over plain HTTP with requests
- MidJourney and Gemini have no public image API wired in yet; they
  return a placeholder SVG so the rest of the job can run end to end
- Any OpenAI failure other than a bad API key falls back to the same
  placeholder, so one flaky call does not lose a whole row

EXTENSIBILITY:
- To add a model: add an ImageModel member and a _generate_with_* method
"""

import base64
import html
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

import requests

from ..config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = "house exterior with natural lighting"
PLACEHOLDER_PROMPTS = {"", "(leave blank for now)"}

ENHANCED_PROMPT_TEMPLATE = (
    "A professional, high-quality photograph of {prompt}. "
    "Realistic style, detailed, high-resolution, well-lit. No text, no watermarks."
)


class ImageModel(Enum):
    """Image generation backends selectable on the dashboard."""
    OPENAI = "openai"
    MIDJOURNEY = "midjourney"
    GEMINI = "gemini"


class ImageGenerationError(Exception):
    """Raised when an image cannot be produced at all."""
    pass


@dataclass
class GeneratedImage:
    """Base64 encoded image plus its mime type."""
    base64_data: str
    mime_type: str

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.base64_data)


def create_svg_image(prompt: str, model_label: str, on: Optional[date] = None) -> str:
    """
    Build a placeholder SVG showing the prompt.

    The background hue is derived from the prompt so the same prompt
    always renders the same colour.
    """
    hue = sum(ord(char) for char in prompt) % 360
    display_prompt = prompt if len(prompt) <= 100 else prompt[:97] + "..."
    today = (on or date.today()).isoformat()

    return f"""
    <svg width="800" height="600" xmlns="http://www.w3.org/2000/svg">
      <rect width="100%" height="100%" fill="hsl({hue}, 70%, 60%)" />
      <rect x="10" y="10" width="780" height="580" fill="white" fill-opacity="0.8" rx="15" ry="15" />
      <text x="400" y="100" font-family="Arial" font-size="24" text-anchor="middle" font-weight="bold">
        Generated by {html.escape(model_label)}
      </text>
      <text x="400" y="150" font-family="Arial" font-size="18" text-anchor="middle">
        Prompt:
      </text>
      <foreignObject x="100" y="180" width="600" height="300">
        <div xmlns="http://www.w3.org/1999/xhtml" style="font-family: Arial; font-size: 16px; text-align: center; word-wrap: break-word;">
          {html.escape(display_prompt)}
        </div>
      </foreignObject>
      <text x="400" y="550" font-family="Arial" font-size="14" text-anchor="middle" fill="#666">
        Generated on {today}
      </text>
    </svg>
    """


def _svg_result(prompt: str, model_label: str) -> GeneratedImage:
    svg = create_svg_image(prompt, model_label)
    return GeneratedImage(
        base64_data=base64.b64encode(svg.encode("utf-8")).decode("ascii"),
        mime_type="image/svg+xml",
    )


class ImageGenerationService:
    """
    Image generation across the supported models.

    USAGE:
        service = ImageGenerationService()
        image = service.generate("a red barn at dusk", "openai")
        print(image.mime_type)  # image/png
    """

    def __init__(self, session: Optional[requests.Session] = None):
        settings = get_settings()
        self._api_key = settings.openai.api_key
        self._api_url = settings.openai.api_base.rstrip("/") + "/images/generations"
        self._model = settings.openai.image_model
        self._size = settings.openai.image_size
        self._quality = settings.openai.image_quality
        self._timeout = settings.openai.image_timeout_seconds
        self._session = session or requests.Session()

        logger.info(f"OpenAI API key status: {'Set' if self._api_key else 'Not set'}")

    def generate(self, prompt: str, model: str) -> GeneratedImage:
        """
        Generate one image.

        Args:
            prompt: Text prompt from the spreadsheet row.
            model: One of "openai", "midjourney", "gemini".

        Returns:
            GeneratedImage with base64 data.
        """
        try:
            image_model = ImageModel(model)
        except ValueError:
            raise ImageGenerationError(f"Unsupported AI model: {model}")

        logger.info(f"Generating image with {image_model.value} using prompt: {prompt}")

        if image_model is ImageModel.OPENAI:
            return self._generate_with_openai(prompt)
        if image_model is ImageModel.MIDJOURNEY:
            return _svg_result(prompt, "MidJourney")
        return _svg_result(prompt, "Gemini")

    def _generate_with_openai(self, prompt: str) -> GeneratedImage:
        if not self._api_key:
            raise ImageGenerationError("OpenAI API key is not properly configured")

        clean_prompt = (prompt or "").strip()
        if clean_prompt in PLACEHOLDER_PROMPTS:
            clean_prompt = DEFAULT_PROMPT
            logger.info(f'Using default prompt: "{clean_prompt}"')

        payload = {
            "model": self._model,
            "prompt": ENHANCED_PROMPT_TEMPLATE.format(prompt=clean_prompt),
            "n": 1,
            "size": self._size,
            "quality": self._quality,
            "response_format": "b64_json",
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self._session.post(
                self._api_url,
                headers=headers,
                json=payload,
                timeout=self._timeout
            )
            if response.status_code == 401:
                raise ImageGenerationError(
                    "OpenAI API key is invalid or missing. Please check your API key."
                )
            response.raise_for_status()

            base64_data = self._extract_image_data(response.json())
            if not base64_data:
                raise ValueError("OpenAI API did not return image data")

            logger.info("OpenAI image generation successful")
            return GeneratedImage(base64_data=base64_data, mime_type="image/png")

        except ImageGenerationError:
            raise

        except requests.RequestException as e:
            logger.warning(f"OpenAI API error: {e}, falling back to SVG image")

        except ValueError as e:
            logger.warning(f"Unusable OpenAI response: {e}, falling back to SVG image")

        return _svg_result(prompt or "No prompt provided", "OpenAI (Fallback)")

    def _extract_image_data(self, data: dict) -> str:
        """Pull the b64_json payload out of an Images API response."""
        try:
            items = data.get("data", [])
            if items:
                return items[0].get("b64_json", "") or ""
        except (AttributeError, IndexError, TypeError):
            pass
        return ""
