import json
import logging

from inheritable.logging_config import (
    AuditLogger,
    StructuredFormatter,
    get_request_id,
    set_request_id,
)


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def _audit(name):
    handler = _ListHandler()
    logger = logging.getLogger(name)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    return AuditLogger(name), handler


def test_structured_formatter_emits_json():
    record = logging.LogRecord("inheritable.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    data = json.loads(StructuredFormatter().format(record))
    assert data["message"] == "hello world"
    assert data["level"] == "INFO"
    assert data["logger"] == "inheritable.test"


def test_audit_event_fields():
    audit, handler = _audit("inheritable.audit.test_fields")
    audit.checkpoint_recorded("0xAccount", nonce=5, timestamp=1000, block_number=19)

    record = handler.records[0]
    assert record.levelno == logging.INFO
    assert record.extra_fields["event_type"] == "CHECKPOINT_RECORDED"
    assert record.extra_fields["nonce"] == 5

    data = json.loads(StructuredFormatter().format(record))
    assert data["event_type"] == "CHECKPOINT_RECORDED"
    assert data["block_number"] == 19


def test_claim_is_warning():
    audit, handler = _audit("inheritable.audit.test_claim")
    audit.inheritance_claimed("0xAccount", "0xHeir", nonce=5, timestamp=87400, block_number=20)
    assert handler.records[0].levelno == logging.WARNING


def test_request_id_attached():
    audit, handler = _audit("inheritable.audit.test_request_id")
    request_id = set_request_id()
    try:
        assert get_request_id() == request_id
        audit.claim_reset("0xAccount")
        data = json.loads(StructuredFormatter().format(handler.records[0]))
        assert data["request_id"] == request_id
    finally:
        set_request_id("")
