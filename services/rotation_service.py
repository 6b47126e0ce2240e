# services/rotation_service.py
import logging
import time
from typing import Callable, Optional

from errors import (
    ConfigurationError,
    FatalProviderError,
    PoolExhaustedError,
    RetryableProviderError,
    TransportError,
)
from services.alert_service import KeyAlerter
from utils.api_key_rotator import APIKeyRotator

logger = logging.getLogger(__name__)

# What to do once every key has failed in one pass.
POLICY_COOLDOWN = "cooldown"  # wait, then start again from key #1
POLICY_FAIL = "fail"          # give up with PoolExhaustedError
EXHAUSTION_POLICIES = (POLICY_COOLDOWN, POLICY_FAIL)


class RotationEngine:
    """
    Runs one prompt against the Gemini API, rotating through the key pool.

    Each dispatch starts at the rotator's cursor. A retryable failure
    (timeout, 429, 5xx) moves the shared cursor to the next key and tries
    again; a success pins the cursor to the key that worked, so the next
    request starts there. Anything else is raised straight to the caller.

    When every key has failed once in the current cycle, the engine either
    sleeps `cooldown_seconds` and restarts from key #1 (at most
    `max_cooldowns` times per dispatch) or raises PoolExhaustedError,
    depending on `exhaustion_policy`.
    """
    def __init__(
        self,
        rotator: APIKeyRotator,
        call_model: Callable[[str, str], dict],
        alerter: Optional[KeyAlerter] = None,
        exhaustion_policy: str = POLICY_COOLDOWN,
        cooldown_seconds: float = 3.0,
        max_cooldowns: int = 1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if exhaustion_policy not in EXHAUSTION_POLICIES:
            raise ConfigurationError(f"Unknown key exhaustion policy: {exhaustion_policy!r}")
        if max_cooldowns < 0:
            raise ConfigurationError("max_cooldowns cannot be negative")
        if cooldown_seconds < 0:
            raise ConfigurationError("cooldown_seconds cannot be negative")
        self.rotator = rotator
        self.call_model = call_model
        self.alerter = alerter
        self.exhaustion_policy = exhaustion_policy
        self.cooldown_seconds = cooldown_seconds
        self.max_cooldowns = max_cooldowns
        self._sleep = sleep

    def dispatch(self, prompt: str) -> dict:
        num_keys = len(self.rotator)
        slot = self.rotator.current_slot()
        tried_in_cycle = 0
        cycles = 1 + (self.max_cooldowns if self.exhaustion_policy == POLICY_COOLDOWN else 0)

        for _attempt in range(num_keys * cycles):
            # 1. Full pass without a success: cool down, restart from key #1
            if tried_in_cycle >= num_keys:
                logger.info(
                    "All %d keys exhausted. Waiting %.1f seconds before retrying...",
                    num_keys, self.cooldown_seconds,
                )
                self._sleep(self.cooldown_seconds)
                tried_in_cycle = 0
                slot = 0

            # 2. Pick the key
            slot %= num_keys
            key_number = slot + 1
            api_key = self.rotator.key_at(slot)
            logger.info("Using Gemini API Key #%d (Attempt %d/%d)", key_number, tried_in_cycle + 1, num_keys)

            # 3. Call; fatal and transport errors propagate after logging
            try:
                result = self.call_model(prompt, api_key)
            except RetryableProviderError as e:
                if e.status_code is None:
                    logger.warning("Timeout on Key #%d: %s", key_number, e.message)
                else:
                    logger.warning("Key #%d failed with status %d: %s", key_number, e.status_code, e.message)
                slot = self.rotator.advance_from(slot)
                if self.alerter is not None:
                    self.alerter.maybe_alert(key_number)
                tried_in_cycle += 1
                logger.info("Switching to Key #%d...", slot + 1)
                continue
            except FatalProviderError as e:
                logger.error("Non-retryable error %d with Key #%d: %s", e.status_code, key_number, e.message)
                raise
            except TransportError as e:
                logger.error("Network error with Key #%d: %s", key_number, e)
                raise

            # 4. Success: next request starts from this key
            self.rotator.pin(slot)
            logger.info("Success with Key #%d", key_number)
            return result

        logger.error("All %d keys exhausted, giving up", num_keys)
        raise PoolExhaustedError(num_keys)
