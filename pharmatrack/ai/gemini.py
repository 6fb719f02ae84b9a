"""
Gemini generateContent client with JSON output and retry on rate limits.
"""
import os
import re
import json
import time
import logging
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = 'https://generativelanguage.googleapis.com/v1beta/models'
REQUEST_TIMEOUT = 60


class AIServiceError(Exception):
    """Raised when the AI provider fails or returns something unusable"""


class RateLimitError(AIServiceError):
    """Raised when the provider keeps answering 429 after every retry"""


def _setting(name, default=''):
    return getattr(settings, name, os.getenv(name, default))


def parse_json_content(text: str) -> Any:
    """Decode model output, tolerating ```json fences"""
    cleaned = re.sub(r'```(?:json)?\s*', '', text or '').replace('```', '').strip()
    try:
        return json.loads(cleaned)
    except ValueError as e:
        raise AIServiceError('Failed to parse AI response') from e


class GeminiClient:
    """
    Thin wrapper over the generateContent endpoint.

    Rate-limited (429) and failed transport calls are retried with
    exponential backoff: ``initial_delay * 2 ** attempt`` seconds, for
    ``max_retries`` retries after the first call.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 max_retries: int = 3, initial_delay: float = 1.0):
        self.api_key = api_key if api_key is not None else _setting('GEMINI_API_KEY')
        self.model = model or _setting('GEMINI_MODEL', 'gemini-2.0-flash')
        self.max_retries = max_retries
        self.initial_delay = initial_delay

    @property
    def url(self) -> str:
        return f"{GEMINI_BASE_URL}/{self.model}:generateContent"

    def _post_with_retry(self, body: Dict[str, Any]) -> requests.Response:
        last_error = None
        for attempt in range(self.max_retries + 1):
            try:
                response = requests.post(
                    self.url,
                    params={'key': self.api_key},
                    json=body,
                    timeout=REQUEST_TIMEOUT,
                )
            except requests.RequestException as e:
                last_error = e
                logger.warning(f"Gemini request attempt {attempt + 1} failed: {e}")
                if attempt < self.max_retries:
                    time.sleep(self.initial_delay * (2 ** attempt))
                continue

            if response.status_code == 429:
                if attempt >= self.max_retries:
                    raise RateLimitError('Rate limit exceeded')
                delay = self.initial_delay * (2 ** attempt)
                logger.info(f"Rate limited (429). Attempt {attempt + 1}/{self.max_retries + 1}. Waiting {delay}s")
                time.sleep(delay)
                continue

            return response

        raise AIServiceError(f'AI service unreachable: {last_error}')

    def generate_json(self, parts: List[Dict[str, Any]]) -> Any:
        """Send content parts and return the decoded JSON answer"""
        if not self.api_key:
            raise AIServiceError('GEMINI_API_KEY is not configured')

        body = {
            'contents': [{'role': 'user', 'parts': parts}],
            'generationConfig': {'responseMimeType': 'application/json'},
        }
        response = self._post_with_retry(body)

        if not response.ok:
            logger.error(f"Gemini API error: {response.status_code} {response.text[:500]}")
            raise AIServiceError(f'AI service error: {response.status_code}')

        data = response.json()
        try:
            content = data['candidates'][0]['content']['parts'][0]['text']
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise AIServiceError('No content in AI response')
        return parse_json_content(content)

    def generate_from_prompt(self, system_prompt: str, user_content: str) -> Any:
        return self.generate_json([{'text': f"{system_prompt}\n\n{user_content}"}])
