import json
import os
from unittest.mock import MagicMock

import pytest
import requests

# config.py reads these at import time; seed them before any test module imports it.
os.environ.setdefault("GOOGLE_GEMINI_API_KEYS", "test-key-1,test-key-2,test-key-3")
os.environ.setdefault("SMTP_HOST", "smtp.example.com")
os.environ.setdefault("SMTP_USER", "alerts@example.com")
os.environ.setdefault("SMTP_PASS", "secret")
os.environ.setdefault("NOTIFY_EMAIL", "ops@example.com")


def make_response(status_code: int, body=None, text: str = None) -> MagicMock:
    """Builds a stand-in for requests.Response."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = "Reason"
    if body is None:
        response.json.side_effect = ValueError("No JSON")
        response.text = text or ""
        content = response.text.encode()
    else:
        response.json.return_value = body
        response.text = text if text is not None else str(body)
        content = json.dumps(body).encode()
    response.iter_content.return_value = [content] if content else []
    return response


class ScriptedModel:
    """
    Fake remote call: pops one scripted outcome per call and records the
    key it was given. Exceptions in the script are raised, anything else
    is returned.
    """
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.keys_used = []

    def __call__(self, prompt, api_key):
        self.keys_used.append(api_key)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def smtp_settings():
    from schemas import SMTPSettings
    return SMTPSettings(
        host="smtp.example.com",
        port=587,
        user="alerts@example.com",
        password="secret",
        notify_email="ops@example.com",
    )
