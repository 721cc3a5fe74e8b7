import logging
import os

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from intipal.api.sessions import router as sessions_router
from intipal.llm_provider import get_llm
from intipal.logging_config import configure_logging

configure_logging(
    level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    audit_path=os.getenv("INTIPAL_AUDIT_LOG") or None,
)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Intipal API")
app.include_router(sessions_router)


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz/model")
def model_healthcheck() -> dict[str, object]:
    """Expose which answering backend is configured."""

    status = get_llm().status()
    payload: dict[str, object] = {
        "model_loaded": status.model_loaded,
        "name": status.model_name,
    }
    if status.error:
        payload["reason"] = status.error
    return payload
