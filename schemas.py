from pydantic import BaseModel
from typing import Optional

class GenerateRequest(BaseModel):
    # Optional so that a missing prompt reaches the handler and gets our own 400
    prompt: Optional[str] = None

class RetellCallRequest(BaseModel):
    phone_number: Optional[str] = None
    to_number: Optional[str] = None  # accepted as an alias of phone_number
    agent_id: Optional[str] = None
    metadata: Optional[dict] = None

class SMTPSettings(BaseModel):
    host: str
    port: int = 587
    user: str
    password: str
    notify_email: str
    timeout: float = 30.0

class RetellSettings(BaseModel):
    api_url: str = "https://api.retellai.com/v2/create-phone-call"
    api_key: Optional[str] = None
    from_number: Optional[str] = None
    default_agent_id: Optional[str] = None
    timeout: float = 30.0
