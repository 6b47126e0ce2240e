import threading
from typing import Optional

from errors import ConfigurationError


def load_api_keys(raw_value: Optional[str], delimiter: str = ",") -> tuple[str, ...]:
    """
    Parses the delimited key list from the environment.
    Order is preserved and duplicates are kept; blank entries are dropped.
    """
    if raw_value is None or not raw_value.strip():
        raise ConfigurationError("GOOGLE_GEMINI_API_KEYS not set in .env file")
    keys = tuple(k.strip() for k in raw_value.split(delimiter) if k.strip())
    if not keys:
        raise ConfigurationError("GOOGLE_GEMINI_API_KEYS contains no usable keys")
    return keys


class APIKeyRotator:
    """
    A thread-safe holder for a fixed pool of API keys and the shared
    cursor pointing at the key the next request should start with.

    The pool never changes after construction. The cursor is only ever
    moved through pin() and advance_from(), each of which takes the lock.
    """
    def __init__(self, api_keys: list[str]):
        if not api_keys:
            raise ValueError("API keys list cannot be empty.")
        self.api_keys = tuple(api_keys)
        self.current_index = 0
        self.lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.api_keys)

    def key_at(self, slot: int) -> str:
        return self.api_keys[slot % len(self.api_keys)]

    def current_slot(self) -> int:
        with self.lock:
            return self.current_index % len(self.api_keys)

    def pin(self, slot: int) -> None:
        """Makes `slot` the starting point for the next independent request."""
        with self.lock:
            self.current_index = slot % len(self.api_keys)

    def advance_from(self, slot: int) -> int:
        """Moves the cursor to the slot after `slot` and returns it."""
        with self.lock:
            self.current_index = (slot + 1) % len(self.api_keys)
            return self.current_index
