# services/alert_service.py
import logging
import smtplib
import ssl
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from email.message import EmailMessage
from typing import Callable, Iterable, Optional

from schemas import SMTPSettings

logger = logging.getLogger(__name__)


def build_alert_message(key_number: int, smtp: SMTPSettings) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = f"Gemini API Key #{key_number} Rate Limited"
    msg["From"] = f'"Gemini Server Alerts" <{smtp.user}>'
    msg["To"] = smtp.notify_email
    msg.set_content(
        "Heads up!\n\n"
        f"Gemini API key #{key_number} has hit a rate limit. "
        "The server has switched to the next key.\n\n"
        "No action is required unless multiple keys begin to fail."
    )
    return msg


def send_key_alert(key_number: int, smtp: SMTPSettings) -> None:
    """
    Sends the "key rate limited" e-mail through the configured relay.
    Raises whatever smtplib raises; callers running this in the
    background are expected to log the failure, not retry it.
    """
    msg = build_alert_message(key_number, smtp)
    context = ssl.create_default_context()
    with smtplib.SMTP(smtp.host, smtp.port, timeout=smtp.timeout) as server:
        server.starttls(context=context)
        server.login(smtp.user, smtp.password)
        server.send_message(msg)


class KeyAlerter:
    """
    Decides which key failures are worth an e-mail and sends them in the
    background.

    Only key numbers in `watched_key_numbers` alert, and each of them at
    most once for the lifetime of this object. Delivery runs on a small
    worker pool; the caller gets the Future back but never has to wait on it.
    """
    def __init__(
        self,
        send: Callable[[int], None],
        watched_key_numbers: Iterable[int] = (5, 8, 10),
        max_workers: int = 2,
    ):
        self._send = send
        self.watched_key_numbers = frozenset(watched_key_numbers)
        self.alerted_keys: set[int] = set()
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="key-alert")

    def maybe_alert(self, key_number: int) -> Optional[Future]:
        if key_number not in self.watched_key_numbers:
            return None
        with self._lock:
            if key_number in self.alerted_keys:
                return None
            self.alerted_keys.add(key_number)

        logger.info("Sending alert for Key #%d...", key_number)
        try:
            future = self._executor.submit(self._send, key_number)
        except RuntimeError as e:
            # Executor already shut down (server stopping); the alert is dropped
            logger.warning("Alert for Key #%d not sent: %s", key_number, e)
            with self._lock:
                self.alerted_keys.discard(key_number)
            return None
        future.add_done_callback(lambda f: self._log_delivery(key_number, f))
        return future

    @staticmethod
    def _log_delivery(key_number: int, future: Future) -> None:
        if future.cancelled():
            logger.warning("Email alert for Key #%d was cancelled", key_number)
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Email alert for Key #%d failed: %s", key_number, exc)
        else:
            logger.info("Alert email sent for Key #%d", key_number)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
