"""HTTP client for the OpenAI-compatible chat completions API.

Uses httpx with configurable timeouts and tenacity for retry with
exponential backoff on rate limiting, 5xx responses and connection errors.
"""

import base64
import logging
import re

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import settings
from prompts import SYSTEM_PROMPT, USER_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Failed to analyze image."

_DATA_URI_RE = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")

# Rate limiting and transient server errors
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class VisionServiceError(Exception):
    """Vision model call failed; carries the upstream status when known."""

    def __init__(self, message: str = DEFAULT_ERROR_MESSAGE, status_code: int = 500):
        super().__init__(message or DEFAULT_ERROR_MESSAGE)
        self.status_code = status_code

    @property
    def message(self) -> str:
        return str(self)


class VisionServiceUnavailable(VisionServiceError):
    """Vision model is temporarily unavailable (retryable: 429, 5xx, connection error)."""


def strip_data_uri(value: str) -> str:
    """Remove a leading ``data:image/<type>;base64,`` marker if present."""
    return _DATA_URI_RE.sub("", value, count=1)


class VisionClient:
    """Sends container images to a vision model with retry and backoff."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: int | None = None,
        connect_timeout: int | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        retry_backoff: float | None = None,
    ):
        self._api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self._base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.model = model or settings.OPENAI_MODEL
        self._retry_attempts = retry_attempts if retry_attempts is not None else settings.VISION_RETRY_ATTEMPTS
        self._retry_delay = retry_delay if retry_delay is not None else settings.VISION_RETRY_DELAY
        self._retry_backoff = retry_backoff if retry_backoff is not None else settings.VISION_RETRY_BACKOFF

        read_timeout = timeout if timeout is not None else settings.VISION_TIMEOUT_SECONDS
        conn_timeout = connect_timeout if connect_timeout is not None else settings.VISION_CONNECT_TIMEOUT

        self._client = httpx.Client(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(
                connect=float(conn_timeout),
                read=float(read_timeout),
                write=30.0,
                pool=30.0,
            ),
        )

    def close(self):
        self._client.close()

    def analyze(self, image_bytes: bytes) -> str:
        """Ask the model to estimate fill level and materials for one image.

        Returns the first choice's message content ("" when the model sent none).
        Raises VisionServiceUnavailable (after retries) or VisionServiceError.
        """
        image_b64 = base64.b64encode(image_bytes).decode()
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": USER_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"},
                        },
                    ],
                },
            ],
        }

        return self._complete_with_retry(payload)

    def _complete_with_retry(self, payload: dict) -> str:
        """Retry wrapper, configured from the instance settings."""

        @retry(
            retry=retry_if_exception_type(VisionServiceUnavailable),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(
                multiplier=self._retry_delay,
                exp_base=self._retry_backoff,
                max=60,
            ),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "Vision model unavailable, retrying in %.1fs (attempt %d/%d)",
                state.next_action.sleep,  # type: ignore[union-attr]
                state.attempt_number,
                self._retry_attempts,
            ),
        )
        def _do_complete() -> str:
            return self._send_completion(payload)

        return _do_complete()

    def _send_completion(self, payload: dict) -> str:
        """Send a single chat completion request."""
        try:
            resp = self._client.post("/chat/completions", json=payload)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.warning("Vision model connection failed: %s", e)
            raise VisionServiceUnavailable(f"Cannot connect to vision model: {e}", 503) from e
        except httpx.ReadTimeout as e:
            logger.warning("Vision model read timeout: %s", e)
            raise VisionServiceUnavailable(f"Vision model read timeout: {e}", 504) from e
        except httpx.HTTPError as e:
            logger.error("Vision model HTTP error: %s", e)
            raise VisionServiceError(f"Vision model HTTP error: {e}") from e

        if resp.status_code in _RETRYABLE_STATUS:
            message = _error_message(resp)
            logger.warning("Vision model returned %d: %s", resp.status_code, message)
            raise VisionServiceUnavailable(message, resp.status_code)

        if resp.status_code != 200:
            message = _error_message(resp)
            logger.error("Vision model error %d: %s", resp.status_code, message)
            raise VisionServiceError(message, resp.status_code)

        return _first_choice_content(resp)

    def health(self) -> dict:
        """Check that the configured model is reachable. Never raises."""
        try:
            resp = self._client.get(f"/models/{self.model}", timeout=10.0)
        except Exception as e:
            logger.warning("Vision model health check failed: %s", e)
            return {"status": "unreachable", "model": self.model, "error": str(e)}

        if resp.status_code != 200:
            return {
                "status": "unreachable",
                "model": self.model,
                "error": _error_message(resp),
            }
        return {"status": "reachable", "model": self.model}


def _error_message(resp: httpx.Response) -> str:
    """Pull ``error.message`` out of an OpenAI-style error body."""
    try:
        body = resp.json()
    except ValueError:
        return DEFAULT_ERROR_MESSAGE

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
            return error["message"]
        if isinstance(error, str) and error:
            return error
    return DEFAULT_ERROR_MESSAGE


def _first_choice_content(resp: httpx.Response) -> str:
    try:
        data = resp.json()
        message = data["choices"][0]["message"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        logger.error("Vision model returned an unexpected payload: %s", e)
        raise VisionServiceError(f"Unexpected response from vision model: {e}") from e

    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""
