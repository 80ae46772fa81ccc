"""
Text correction capability and an HTTP chat-completions implementation.
"""

import logging
from typing import Protocol

import requests

from .errors import CorrectionFailure, EngineUnavailable

logger = logging.getLogger(__name__)

# Results at or above this confidence are passed through untouched
CONFIDENCE_SKIP_THRESHOLD = 0.95

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that corrects transcription errors. "
    "Return only the corrected text without explanations."
)


class CorrectionEngine(Protocol):
    """Anything that can improve a transcription given a context prompt."""

    def improve(self, text: str, context_prompt: str, confidence: float) -> str:
        ...

    def destroy(self) -> None:
        ...


def clean_completion(content: str) -> str:
    """Strip outer whitespace and one pair of surrounding double quotes."""
    content = content.strip()
    if len(content) >= 2 and content[0] == '"' and content[-1] == '"':
        content = content[1:-1]
    return content.strip()


class HttpCorrectionEngine:
    """Correction via an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        endpoint: str,
        credential: str,
        model: str = "gpt-3.5-turbo",
        timeout: float = 30.0,
        session: requests.Session = None,
    ):
        self.endpoint = endpoint
        self.credential = credential
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def create(cls, endpoint: str, credential: str, **kwargs) -> "HttpCorrectionEngine":
        if not endpoint or not credential:
            logger.error("Correction engine: missing API endpoint or credential")
            raise EngineUnavailable("Correction endpoint and credential are required")

        engine = cls(endpoint, credential, **kwargs)
        logger.info(f"Correction engine created with endpoint: {endpoint}")
        return engine

    def _build_payload(self, text: str, context_prompt: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": context_prompt or DEFAULT_SYSTEM_PROMPT},
                {"role": "user", "content": f'Please correct any errors in this transcription: "{text}"'},
            ],
            "max_tokens": 150,
            "temperature": 0.3,
        }

    def improve(self, text: str, context_prompt: str = "", confidence: float = 0.0) -> str:
        """
        Return a corrected version of text.

        High-confidence input comes back unchanged without a request. Any
        transport, status or payload problem raises CorrectionFailure.
        """
        if self.session is None:
            raise EngineUnavailable("Correction engine has been destroyed")
        if not text:
            raise CorrectionFailure("Nothing to correct")

        if confidence > CONFIDENCE_SKIP_THRESHOLD:
            logger.debug(f"Skipping correction, confidence too high: {confidence:.2f}")
            return text

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.credential}",
        }

        try:
            response = self.session.post(
                self.endpoint,
                json=self._build_payload(text, context_prompt),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise CorrectionFailure(f"Correction request failed: {e}") from e

        if response.status_code != 200:
            raise CorrectionFailure(f"Correction API returned status {response.status_code}")

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CorrectionFailure(f"Malformed correction response: {e}") from e

        if not isinstance(content, str):
            raise CorrectionFailure("Correction content is not text")

        corrected = clean_completion(content)
        if not corrected:
            raise CorrectionFailure("Correction came back empty")

        if corrected != text:
            logger.info(f"Correction: '{text}' -> '{corrected}'")
        return corrected

    def destroy(self):
        if self.session is None:
            return
        self.session.close()
        self.session = None
        logger.info("Correction engine destroyed")
