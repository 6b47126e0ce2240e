# services/retell_service.py
"""
n8n -> Retell integration.

An n8n workflow posts a phone number to our webhook and we ask Retell AI
to place an outbound call to it with the configured agent. Nothing here
touches the Gemini key pool.
"""
import logging
import re
from typing import Optional

import requests

from schemas import RetellSettings

logger = logging.getLogger(__name__)

# Basic E.164 check: optional "+", no leading zero, at most 15 digits.
E164_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")


def is_valid_phone_number(phone_number: str) -> bool:
    return bool(E164_PATTERN.match(phone_number))


def create_retell_call(
    to_number: str,
    settings: RetellSettings,
    agent_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    session: Optional[requests.Session] = None,
) -> dict:
    """
    Places a phone call via Retell AI.

    Args:
        to_number: Number to call, E.164 format
        settings: Retell API key, caller number and default agent
        agent_id: Overrides the default agent for this call
        metadata: Free-form data attached to the call

    Returns a result dict with "success" set either way; errors from
    Retell are reported in the dict rather than raised. The camelCase
    keys (callId, agentId) are what existing n8n workflows read.
    """
    if not settings.api_key:
        return {"success": False, "error": "RETELL_API_KEY not configured", "status": None}

    http = session or requests
    try:
        response = http.post(
            settings.api_url,
            json={
                "from_number": settings.from_number,
                "to_number": to_number,
                "override_agent_id": agent_id or settings.default_agent_id,
                "metadata": metadata or {},
            },
            headers={
                "Authorization": f"Bearer {settings.api_key}",
                "Content-Type": "application/json",
            },
            timeout=settings.timeout,
        )
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        body = _response_body(e.response)
        logger.error("Retell API Error: %s", body)
        return {"success": False, "error": body, "status": e.response.status_code}
    except requests.exceptions.RequestException as e:
        logger.error("Retell API Error: %s", e)
        return {"success": False, "error": str(e), "status": None}

    data = response.json()
    return {
        "success": True,
        "callId": data.get("call_id"),
        "status": data.get("call_status"),
        "agentId": data.get("agent_id"),
        "data": data,
    }


def _response_body(response: requests.Response):
    try:
        return response.json()
    except ValueError:
        return response.text
