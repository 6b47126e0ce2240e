# main.py
import logging
from contextlib import asynccontextmanager
from functools import partial

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

import config
from errors import DispatchError, PoolExhaustedError
from schemas import GenerateRequest, RetellCallRequest, RetellSettings
from services import retell_service
from services.alert_service import KeyAlerter, send_key_alert
from services.gemini_service import GeminiClient
from services.rotation_service import RotationEngine

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

MISSING_PROMPT_ERROR = 'Missing "prompt" in request body'
EXHAUSTED_ERROR = "All Gemini API keys exhausted or unavailable"

# --- Rotation engine wiring ---
# One engine per process: the cursor and the alerted-keys set live here.
gemini_client = GeminiClient(endpoint=config.GEMINI_ENDPOINT, timeout=config.GEMINI_TIMEOUT_SECONDS)
key_alerter = KeyAlerter(
    partial(send_key_alert, smtp=config.SMTP_SETTINGS),
    watched_key_numbers=config.ALERT_KEY_NUMBERS,
)
rotation_engine = RotationEngine(
    config.gemini_key_rotator,
    gemini_client.generate,
    alerter=key_alerter,
    exhaustion_policy=config.KEY_EXHAUSTION_POLICY,
    cooldown_seconds=config.KEY_COOLDOWN_SECONDS,
    max_cooldowns=config.MAX_KEY_COOLDOWNS,
)


def get_rotation_engine() -> RotationEngine:
    return rotation_engine


def get_retell_settings() -> RetellSettings:
    return config.RETELL_SETTINGS


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loaded %d Gemini API keys (policy: %s)", len(config.gemini_key_rotator), config.KEY_EXHAUSTION_POLICY)
    yield
    key_alerter.shutdown(wait=False)


app = FastAPI(
    title="Gemini Prompt Server",
    description="Forwards prompts to Gemini, rotating API keys on rate limits and server errors.",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Both endpoints answer malformed bodies with 400 in their own error shape
    if request.url.path == "/generate":
        return JSONResponse(status_code=400, content={"error": MISSING_PROMPT_ERROR})
    return JSONResponse(status_code=400, content={"success": False, "error": "Invalid request body"})

# --- API Endpoints ---

@app.get("/", response_class=PlainTextResponse)
def root():
    return "Gemini Prompt Server is running. Use POST /generate to interact."


@app.post("/generate")
def generate_endpoint(request: GenerateRequest, engine: RotationEngine = Depends(get_rotation_engine)):
    """
    Sends the prompt through the key rotation engine and returns
    Gemini's raw response. Declared sync so FastAPI runs it in the
    threadpool and a cooldown only holds up this request.
    """
    if not request.prompt:
        return JSONResponse(status_code=400, content={"error": MISSING_PROMPT_ERROR})

    logger.info("Received prompt (%d chars)", len(request.prompt))
    try:
        gemini_response = engine.dispatch(request.prompt)
    except PoolExhaustedError:
        return JSONResponse(status_code=503, content={"error": EXHAUSTED_ERROR})
    except DispatchError as e:
        return JSONResponse(status_code=500, content={"error": str(e) or "Unknown error"})

    return {"response": gemini_response}


@app.post("/webhook/retell-call")
def retell_webhook(request: RetellCallRequest, settings: RetellSettings = Depends(get_retell_settings)):
    """
    n8n posts here to trigger an outbound Retell phone call.
    """
    logger.info("n8n webhook received for agent %s", request.agent_id or "default")
    phone_number = request.phone_number or request.to_number

    if not phone_number:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Missing required field: phone_number or to_number"},
        )
    if not retell_service.is_valid_phone_number(phone_number):
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Invalid phone number format. Use E.164 format (e.g., +19373293653)",
            },
        )

    try:
        result = retell_service.create_retell_call(phone_number, settings, request.agent_id, request.metadata)
    except Exception as e:
        logger.exception("Unexpected error creating Retell call")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    if not result["success"]:
        return JSONResponse(status_code=500, content=result)
    logger.info("Call created: %s", result["callId"])
    return result


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
