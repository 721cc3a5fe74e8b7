from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

from intipal.ingest import IngestionPipeline
from intipal.logging_config import AUDIT_LOGGER_NAME, MinimalJSONFormatter, configure_logging
from intipal.telemetry import log_event

from conftest import make_descriptor


def _record(msg: object) -> logging.LogRecord:
    return logging.LogRecord("intipal.test", logging.INFO, __file__, 1, msg, None, None)


def test_formatter_merges_dict_messages() -> None:
    formatted = MinimalJSONFormatter().format(_record({"step": "upload.start", "details": {"pages": 3}}))

    payload = json.loads(formatted)
    assert payload["step"] == "upload.start"
    assert payload["details"] == {"pages": 3}
    assert payload["level"] == "INFO"
    assert payload["module"] == "intipal.test"
    assert payload["timestamp"].endswith("Z")


def test_formatter_renders_plain_messages_with_traceback() -> None:
    try:
        raise ValueError("bad page")
    except ValueError:
        record = logging.LogRecord(
            "intipal.test", logging.ERROR, __file__, 1, "parse %s", ("failed",), sys.exc_info()
        )

    payload = json.loads(MinimalJSONFormatter().format(record))

    assert payload["message"] == "parse failed"
    assert payload["level"] == "ERROR"
    assert "ValueError: bad page" in payload["exc"]


def test_log_event_attaches_exception(caplog) -> None:
    logger = logging.getLogger("intipal.test.events")
    error = ValueError("boom")

    with caplog.at_level(logging.INFO, logger="intipal.test.events"):
        log_event(logger, "answer.failed", level="warning", session_id="s1", exc=error)

    event = caplog.records[-1].msg
    assert event["step"] == "answer.failed"
    assert event["session_id"] == "s1"
    assert "ValueError: boom" in event["exc"]
    assert caplog.records[-1].levelno == logging.WARNING


def test_upload_audit_is_written_as_json(tmp_path: Path, three_page_pdf: bytes) -> None:
    audit_path = tmp_path / "session_audit.log"
    configure_logging(audit_path=str(audit_path))
    try:
        pipeline = IngestionPipeline(session_id="audit-session")
        asyncio.run(pipeline.upload(make_descriptor(three_page_pdf, name="invoice.pdf")))

        for handler in logging.getLogger(AUDIT_LOGGER_NAME).handlers:
            handler.flush()
        lines = audit_path.read_text(encoding="utf-8").splitlines()
        entry = json.loads(lines[-1])
        assert entry["event"] == "upload"
        assert entry["session_id"] == "audit-session"
        assert entry["file_name"] == "invoice.pdf"
        assert entry["status"] == "succeeded"
        assert entry["pages"] == 3
        assert "timestamp" in entry
    finally:
        for handler in list(logging.getLogger(AUDIT_LOGGER_NAME).handlers):
            handler.close()
        configure_logging()
