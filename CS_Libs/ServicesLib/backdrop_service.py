"""
Backdrop generation service.

Asks a text-to-image model for a backdrop described by a prompt and returns
the encoded image bytes. The session treats every service as an opaque
``generate(prompt) -> bytes`` collaborator; ``GeminiBackdropService`` is the
implementation backed by the Gemini ``generateContent`` REST endpoint.

Example:
    >>> service = GeminiBackdropService()          # key from GEMINI_API_KEY
    >>> png_bytes = service.generate("sunlit loft, shallow depth of field")
"""

import abc
import base64
import binascii
import logging
import os
from typing import Any, Dict, Optional

import requests

from CS_Libs.constants import (
    BACKDROP_REQUEST_TIMEOUT,
    GEMINI_API_BASE,
    GEMINI_API_KEY_ENV_VARS,
    GEMINI_IMAGE_MODEL,
)

logger = logging.getLogger(__name__)


class BackdropServiceError(Exception):
    """Base class for backdrop generation failures."""


class BackdropRequestError(BackdropServiceError):
    """The request could not be sent or the service answered with an error."""


class NoImageCandidateError(BackdropServiceError):
    """The service answered but returned no image."""


class BackdropService(abc.ABC):
    """Interface of a prompt-to-image backdrop generator.

    Subclasses must override ``generate``; the base class cannot be
    instantiated.
    """

    @abc.abstractmethod
    def generate(self, prompt: str) -> bytes:
        """
        Generate a backdrop image.

        Args:
            prompt: Non-empty text description of the backdrop

        Returns:
            Encoded image bytes (PNG, JPEG, ...)
        """


def resolve_api_key(explicit: Optional[str] = None) -> Optional[str]:
    """Explicit key first, then the first non-empty known environment variable."""
    if explicit:
        return explicit
    for name in GEMINI_API_KEY_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


def extract_inline_image(payload: Dict[str, Any]) -> bytes:
    """
    Pull the first inline image out of a ``generateContent`` response.

    Only the first candidate is inspected; its parts are scanned in order
    for ``inlineData`` with an ``image/*`` MIME type.

    Raises:
        NoImageCandidateError: If no such part exists or its data is not
                               valid base64
    """
    candidates = payload.get("candidates") if isinstance(payload, dict) else None
    if not isinstance(candidates, list) or not candidates:
        raise NoImageCandidateError("No image generated: response has no candidates")

    candidate = candidates[0]
    content = candidate.get("content") if isinstance(candidate, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        raise NoImageCandidateError("No image generated: first candidate has no content parts")

    for part in parts:
        if not isinstance(part, dict):
            continue
        inline = part.get("inlineData") or part.get("inline_data")
        if not isinstance(inline, dict):
            continue
        mime_type = inline.get("mimeType") or inline.get("mime_type") or ""
        if not isinstance(mime_type, str) or not mime_type.startswith("image/"):
            continue
        try:
            return base64.b64decode(inline.get("data", ""), validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise NoImageCandidateError(f"Image part is not valid base64: {str(e)}") from e

    raise NoImageCandidateError("No image generated: no image part in the first candidate")


class GeminiBackdropService(BackdropService):
    """Backdrop generator using the Gemini image model over HTTPS.

    Attributes:
        api_key: API key; resolved from the environment when not given
        model: Model name used in the endpoint path
        timeout: Request timeout in seconds
        api_base: Base URL of the Generative Language API
        session: requests.Session (or compatible object) used for the call
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GEMINI_IMAGE_MODEL,
        timeout: float = BACKDROP_REQUEST_TIMEOUT,
        api_base: str = GEMINI_API_BASE,
        session: Optional[Any] = None,
    ):
        self.api_key = resolve_api_key(api_key)
        self.model = model
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")
        self.session = session if session is not None else requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def generate(self, prompt: str) -> bytes:
        """
        Generate a backdrop for ``prompt``.

        Raises:
            ValueError: If the prompt is empty or blank (no request is sent)
            BackdropRequestError: Missing API key, network failure, HTTP error
                                  or an unparseable response
            NoImageCandidateError: The response holds no image
        """
        if not prompt or not prompt.strip():
            raise ValueError("Backdrop prompt must not be empty")
        if not self.api_key:
            raise BackdropRequestError(
                f"No API key: set one of {', '.join(GEMINI_API_KEY_ENV_VARS)}"
            )

        body = {"contents": [{"parts": [{"text": prompt}]}]}
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

        logger.debug(f"Requesting backdrop from {self.model}")
        try:
            response = self.session.post(self.endpoint, json=body, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            raise BackdropRequestError(f"Backdrop service returned HTTP {status}") from e
        except requests.exceptions.RequestException as e:
            raise BackdropRequestError(f"Backdrop request failed: {str(e)}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise BackdropRequestError("Backdrop service returned invalid JSON") from e
        if not isinstance(payload, dict):
            raise BackdropRequestError("Backdrop service returned an unexpected payload")

        data = extract_inline_image(payload)
        logger.info(f"Received backdrop image ({len(data)} bytes)")
        return data
