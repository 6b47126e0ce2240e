# config.py
import os
from dotenv import load_dotenv
from errors import ConfigurationError
from schemas import RetellSettings, SMTPSettings
from services.gemini_service import GEMINI_ENDPOINT as DEFAULT_GEMINI_ENDPOINT
from utils.api_key_rotator import APIKeyRotator, load_api_keys

# Load environment variables from .env file
load_dotenv()


def _required(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} not set in .env file")
    return value


def _number(name: str, default, cast=float, minimum=None, maximum=None, above=None):
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if above is not None and value <= above:
        raise ConfigurationError(f"{name} must be greater than {above}, got {value}")
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ConfigurationError(f"{name} must be at most {maximum}, got {value}")
    return value


def _int_list(name: str, default: str) -> frozenset:
    raw = os.getenv(name, default)
    try:
        return frozenset(int(part) for part in raw.split(",") if part.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be a comma-separated list of key numbers, got {raw!r}") from None


# --- Gemini Key Rotator ---
GOOGLE_GEMINI_API_KEYS = load_api_keys(os.getenv("GOOGLE_GEMINI_API_KEYS"))
gemini_key_rotator = APIKeyRotator(GOOGLE_GEMINI_API_KEYS)

GEMINI_ENDPOINT = os.getenv("GEMINI_ENDPOINT", DEFAULT_GEMINI_ENDPOINT)
GEMINI_TIMEOUT_SECONDS = _number("GEMINI_TIMEOUT_SECONDS", 50.0, above=0)

# --- Rotation policy ---
# "cooldown": wait and start again from key #1 once every key has failed
# "fail": answer 503 as soon as every key has failed once
KEY_EXHAUSTION_POLICY = os.getenv("KEY_EXHAUSTION_POLICY", "cooldown").strip().lower()
if KEY_EXHAUSTION_POLICY not in ("cooldown", "fail"):
    raise ConfigurationError(f"KEY_EXHAUSTION_POLICY must be 'cooldown' or 'fail', got {KEY_EXHAUSTION_POLICY!r}")
KEY_COOLDOWN_SECONDS = _number("KEY_COOLDOWN_SECONDS", 3.0, minimum=0)
MAX_KEY_COOLDOWNS = _number("MAX_KEY_COOLDOWNS", 1, cast=int, minimum=0)

# Key numbers (1-based) that e-mail the operator the first time they get rate limited
ALERT_KEY_NUMBERS = _int_list("ALERT_KEY_NUMBERS", "5,8,10")

# --- SMTP alerts ---
SMTP_SETTINGS = SMTPSettings(
    host=_required("SMTP_HOST"),
    port=_number("SMTP_PORT", 587, cast=int, minimum=1, maximum=65535),
    user=_required("SMTP_USER"),
    password=_required("SMTP_PASS"),
    notify_email=_required("NOTIFY_EMAIL"),
)

# --- Retell (optional, only used by the n8n webhook) ---
RETELL_SETTINGS = RetellSettings(
    api_url=os.getenv("RETELL_API_URL") or RetellSettings().api_url,
    api_key=os.getenv("RETELL_API_KEY") or None,
    from_number=os.getenv("RETELL_FROM_NUMBER") or None,
    default_agent_id=os.getenv("RETELL_AGENT_ID") or None,
)

# --- Server ---
PORT = _number("PORT", 3000, cast=int, minimum=1, maximum=65535)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
