# services/gemini_service.py
import json
from time import monotonic
from typing import Callable

import requests

from errors import FatalProviderError, RetryableProviderError, TransportError

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"

# Rate limited or a server/gateway fault: worth switching keys for.
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

CHUNK_SIZE = 8192


def _error_message(body: bytes, reason: str) -> str:
    """
    Pulls the human-readable message out of a Gemini error body, e.g.
    {"error": {"code": 429, "message": "Resource has been exhausted", ...}}
    Falls back to the raw body when it is not shaped like that.
    """
    text = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(text)
    except ValueError:
        return text or reason or "Unknown error"
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        message = data["error"].get("message")
        if message:
            return message
    return text


class GeminiClient:
    """
    Thin wrapper around the generateContent REST endpoint.

    generate() returns the provider's JSON payload untouched, or raises one
    of RetryableProviderError / FatalProviderError / TransportError so the
    rotation engine never has to look at HTTP details.

    `timeout` bounds the whole call: requests applies it to the connect
    and to every socket read, and the body is streamed so a response
    still trickling in after `timeout` seconds is abandoned as a timeout.
    Each call opens and closes its own session; requests sessions are not
    shared between the server's worker threads.
    """
    def __init__(
        self,
        endpoint: str = GEMINI_ENDPOINT,
        timeout: float = 50.0,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session_factory = session_factory

    def generate(self, prompt: str, api_key: str) -> dict:
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        deadline = monotonic() + self.timeout

        with self.session_factory() as session:
            try:
                response = session.post(
                    self.endpoint,
                    params={"key": api_key},
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout,
                    stream=True,
                )
            except requests.exceptions.Timeout as e:
                # Checked before ConnectionError: ConnectTimeout is both.
                raise RetryableProviderError(f"Request timed out after {self.timeout}s: {e}") from e
            except requests.exceptions.RequestException as e:
                raise TransportError(f"Network error: {e}") from e

            try:
                body = self._read_body(response, deadline)
            finally:
                response.close()

        if response.ok:
            try:
                return json.loads(body)
            except ValueError as e:
                raise TransportError(f"Gemini returned a non-JSON body (status {response.status_code})") from e

        status = response.status_code
        message = _error_message(body, response.reason)
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableProviderError(message, status_code=status)
        raise FatalProviderError(status, message)

    def _read_body(self, response: requests.Response, deadline: float) -> bytes:
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                chunks.append(chunk)
                if monotonic() > deadline:
                    raise RetryableProviderError(f"Response not complete after {self.timeout}s")
        except (requests.exceptions.ConnectionError, requests.exceptions.ChunkedEncodingError) as e:
            # Status line already arrived; a read timeout or a cut-off body mid-stream is transient
            raise RetryableProviderError(f"Response body interrupted: {e}") from e
        return b"".join(chunks)
