"""Client wrapper for the Gemini model behind the tutor chat."""

from __future__ import annotations

import logging
from functools import lru_cache

import google.ai.generativelanguage as glm
from google.api_core.exceptions import GoogleAPICallError

from utils.exceptions import ChatFailure

logger = logging.getLogger(__name__)


@lru_cache(maxsize=64)
def _service_client(api_key: str) -> glm.GenerativeServiceClient:
    """One transport per API key; nothing process-global is configured."""
    return glm.GenerativeServiceClient(client_options={"api_key": api_key})


def _response_text(response) -> str:
    for candidate in response.candidates:
        return "".join(part.text for part in candidate.content.parts)
    return ""


class GeminiClient:
    """Generate text with whichever API key the caller resolved."""

    def __init__(self, model_name: str = "gemini-1.5-flash") -> None:
        self.model_name = model_name

    @property
    def model_path(self) -> str:
        if self.model_name.startswith("models/"):
            return self.model_name
        return f"models/{self.model_name}"

    def generate_text(self, prompt: str, api_key: str) -> str:
        request = glm.GenerateContentRequest(
            model=self.model_path,
            contents=[glm.Content(role="user", parts=[glm.Part(text=prompt)])],
        )
        try:
            response = _service_client(api_key).generate_content(request=request)
        except GoogleAPICallError as exc:
            logger.error("Gemini generate_content failed: %s", exc.message)
            raise ChatFailure() from exc
        return _response_text(response)


__all__ = ["GeminiClient"]
