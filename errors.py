# errors.py
from typing import Optional


class ConfigurationError(EnvironmentError):
    """Raised at startup when a required setting is missing or malformed."""


class DispatchError(Exception):
    """Base class for every failure surfaced by the rotation engine."""


class RetryableProviderError(DispatchError):
    """
    A transient failure (timeout, 429 or 5xx). The engine absorbs these
    by switching to the next key; they only escape the engine wrapped
    in a PoolExhaustedError.
    """
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FatalProviderError(DispatchError):
    """Gemini answered with a status we must not retry (400, 401, 403, ...)."""
    def __init__(self, status_code: int, message: str):
        super().__init__(f"Gemini API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class TransportError(DispatchError):
    """The request never produced a structured response (DNS, refused, reset)."""


class PoolExhaustedError(DispatchError):
    def __init__(self, pool_size: int):
        super().__init__("All Gemini API keys exhausted.")
        self.pool_size = pool_size
