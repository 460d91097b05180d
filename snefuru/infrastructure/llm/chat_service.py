"""
Chat Service - OpenAI Chat Completions Relay
=============================================

Forwards a conversation to the OpenAI chat completions endpoint and maps
provider failures onto HTTP status codes the dashboard can show.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Dict, Optional

import requests

from ..config import get_settings

logger = logging.getLogger(__name__)

MODEL_CATALOG = [
    {
        "id": "gpt-4o",
        "name": "GPT-4o",
        "description": "Most capable model, excellent for complex tasks",
        "category": "latest",
    },
    {
        "id": "gpt-4",
        "name": "GPT-4",
        "description": "Advanced reasoning and creative tasks",
        "category": "advanced",
    },
    {
        "id": "gpt-3.5-turbo",
        "name": "GPT-3.5 Turbo",
        "description": "Fast and efficient for most tasks",
        "category": "standard",
    },
]

# OpenAI error code -> (HTTP status, user message)
ERROR_CODE_MAP = {
    "insufficient_quota": (
        429, "OpenAI API quota exceeded. Please check your billing settings or try again later."
    ),
    "invalid_api_key": (
        401, "Invalid OpenAI API key. Please contact administrator."
    ),
    "model_not_found": (
        400, "The requested AI model is not available. Please try a different model."
    ),
    "context_length_exceeded": (
        400, "Conversation is too long. Please start a new chat or clear the current conversation."
    ),
}


GENERIC_ERROR_MESSAGE = "An error occurred while processing your message. Please try again."


class ChatServiceError(Exception):
    """Chat failure carrying the HTTP status to report."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class ChatReply:
    response: str
    model: str
    usage: Dict = field(default_factory=dict)


class ChatService:
    """
    USAGE:
        service = ChatService()
        reply = service.send("Hello!", model="gpt-4o", history=[])
        print(reply.response)
    """

    def __init__(self, session: Optional[requests.Session] = None):
        settings = get_settings()
        self._api_key = settings.openai.api_key
        self._api_url = settings.openai.api_base.rstrip("/") + "/chat/completions"
        self._models = list(settings.openai.chat_models)
        self._default_model = settings.openai.default_chat_model
        self._max_tokens = settings.openai.chat_max_tokens
        self._temperature = settings.openai.chat_temperature
        self._timeout = settings.openai.chat_timeout_seconds
        self._session = session or requests.Session()

    @property
    def available_models(self) -> List[str]:
        return list(self._models)

    @property
    def api_key_configured(self) -> bool:
        return bool(self._api_key)

    def select_model(self, model: Optional[str]) -> str:
        """Requested model if supported, otherwise the default."""
        return model if model in self._models else self._default_model

    def send(self, message: str, model: Optional[str] = None,
             history: Optional[List[Dict]] = None) -> ChatReply:
        """
        Send the conversation plus a new user message.

        Raises:
            ChatServiceError: with the status code to return to the client.
        """
        if not self._api_key:
            raise ChatServiceError(
                "OpenAI API key not configured. Please contact administrator.", 500
            )

        selected_model = self.select_model(model)
        messages = [
            {"role": item.get("role"), "content": item.get("content")}
            for item in (history or [])
        ]
        messages.append({"role": "user", "content": message})

        payload = {
            "model": selected_model,
            "messages": messages,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "stream": False,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        logger.info(f"Sending message to {selected_model}")

        try:
            response = self._session.post(
                self._api_url, headers=headers, json=payload, timeout=self._timeout
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning(f"Chat API unreachable: {e}")
            raise ChatServiceError(
                "Unable to connect to AI service. Please check your internet connection and try again.",
                503,
            )

        if not response.ok:
            raise self._error_from_response(response)

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Chat API returned a non-JSON body ({response.status_code})")
            raise ChatServiceError(GENERIC_ERROR_MESSAGE, 500)

        content = self._extract_response_content(data)
        if not content:
            raise ChatServiceError("No response received from AI model", 500)

        logger.info(f"Received response from {selected_model}")
        return ChatReply(response=content, model=selected_model, usage=data.get("usage") or {})

    def _error_from_response(self, response: requests.Response) -> ChatServiceError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        if not isinstance(error, dict):
            error = {}

        code = error.get("code")
        if code in ERROR_CODE_MAP:
            status, message = ERROR_CODE_MAP[code]
            return ChatServiceError(message, status)

        if response.status_code == 429:
            return ChatServiceError(
                "Too many requests. Please wait a moment before sending another message.", 429
            )

        logger.error(f"Chat API error {response.status_code}: {error}")
        return ChatServiceError(
            error.get("message") or GENERIC_ERROR_MESSAGE,
            500,
        )

    def _extract_response_content(self, data: dict) -> str:
        """Extract text content from API response."""
        try:
            choices = data.get("choices", [])
            if choices:
                message = choices[0].get("message", {})
                return (message.get("content") or "").strip()
        except (KeyError, IndexError, TypeError, AttributeError):
            pass
        return ""
