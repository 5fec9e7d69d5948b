"""
Structured Logging — JSON log lines with request correlation.

Modules keep using ``logging.getLogger(__name__)``; this module only decides
how records are rendered. When ``LOG_JSON`` is on, every record is emitted as
a JSON object carrying the subsystem tag and the request/user ids bound by
``RequestContextMiddleware``.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from enum import Enum
from typing import Any, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Context variables for request correlation
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")
conversation_id_var: ContextVar[str] = ContextVar("conversation_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


class Subsystem(str, Enum):
    API = "api"
    AUTH = "auth"
    CHAT = "chat"
    DB = "db"
    LLM = "llm"
    PRICING = "pricing"
    PAYMENTS = "payments"
    WEBHOOK = "webhook"


# Top-level module of each package mapped to its subsystem tag
_SUBSYSTEM_BY_MODULE: Dict[str, Subsystem] = {
    "app.api.auth": Subsystem.AUTH,
    "app.services.auth_service": Subsystem.AUTH,
    "app.api.chat": Subsystem.CHAT,
    "app.services.chat_service": Subsystem.CHAT,
    "app.db": Subsystem.DB,
    "app.services.anthropic_service": Subsystem.LLM,
    "app.services.answer_extraction": Subsystem.LLM,
    "app.services.pricing_service": Subsystem.PRICING,
    "app.services.stripe_service": Subsystem.PAYMENTS,
    "app.services.payment_service": Subsystem.PAYMENTS,
    "app.services.api_key_service": Subsystem.PAYMENTS,
    "app.api.webhooks": Subsystem.WEBHOOK,
}


def subsystem_for(logger_name: str) -> str:
    for prefix, subsystem in _SUBSYSTEM_BY_MODULE.items():
        if logger_name == prefix or logger_name.startswith(prefix + "."):
            return subsystem.value
    return Subsystem.API.value if logger_name.startswith("app.api") else "general"


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "subsystem": getattr(record, "subsystem", None) or subsystem_for(record.name),
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add context vars if set
        req_id = request_id_var.get("")
        if req_id:
            log_entry["request_id"] = req_id
        usr_id = user_id_var.get("")
        if usr_id:
            log_entry["user_id"] = usr_id
        conv_id = conversation_id_var.get("")
        if conv_id:
            log_entry["conversation_id"] = conv_id

        extra = getattr(record, "extra_data", None)
        if extra:
            log_entry["data"] = extra

        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(log_entry, default=str)


_configured = False


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Install a single stdout handler on the ``app`` logger tree."""
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    root = logging.getLogger("app")
    root.addHandler(handler)
    root.setLevel(level.upper())
    root.propagate = False
    _configured = True


def set_request_context(request_id: str = "", user_id: str = "", conversation_id: str = ""):
    """Set context variables for the current request."""
    if request_id:
        request_id_var.set(request_id)
    if user_id:
        user_id_var.set(user_id)
    if conversation_id:
        conversation_id_var.set(conversation_id)


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid.uuid4())[:12]


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request and echo it back."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
