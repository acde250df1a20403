"""
Gemini Client - Hosted Language Generation Service

Blocking wrapper around the Generative Language REST API. Errors are raised
to the caller; the Language Model Adapter turns them into
GenerationUnavailable.
"""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

API_ROOT = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiClient:
    """generate(prompt, system_prompt=None) -> str over httpx"""

    def __init__(self, api_key: Optional[str], *, model: str = "gemini-1.5-pro-latest",
                 base_url: Optional[str] = None, timeout: float = 30.0,
                 temperature: float = 0.2, http_client: Optional[httpx.Client] = None) -> None:
        if not api_key:
            raise ValueError("GEMINI_API_KEY is not configured")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url or f"{API_ROOT}/{model}:generateContent"
        self.temperature = temperature
        self._client = http_client or httpx.Client(timeout=timeout)
        logger.info(f"Gemini client initialized (model={model})")

    def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        One generateContent call

        Raises:
            httpx.HTTPError: On transport or HTTP status errors
            RuntimeError: If the response carries no text candidate
        """
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self.temperature},
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        response = self._client.post(self.base_url, params={"key": self.api_key}, json=payload)
        response.raise_for_status()

        try:
            data = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise RuntimeError(f"Unexpected Gemini response: {response.text[:200]}") from e

    def close(self) -> None:
        self._client.close()
