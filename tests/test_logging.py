import logging

import pytest

from giftpool.core.audit import AuditAction, audit_contribution_action
from giftpool.core.config import settings
from giftpool.core.logger import configure_logging


@pytest.fixture
def audit_file(tmp_path, monkeypatch):
    path = tmp_path / "logs" / "audit.log"
    monkeypatch.setattr(settings, "audit_log_file", str(path))
    monkeypatch.setattr(settings, "log_file", "")
    audit_logger = logging.getLogger("giftpool.audit")
    before = list(audit_logger.handlers)
    yield path
    for handler in audit_logger.handlers[:]:
        if handler not in before:
            audit_logger.removeHandler(handler)
            handler.close()


def test_audit_events_reach_audit_file(audit_file):
    configure_logging()
    configure_logging()

    audit_contribution_action(AuditAction.CONTRIBUTION_UPSERT, user_id=7, item_id=3, amount=None)
    for handler in logging.getLogger("giftpool.audit").handlers:
        handler.flush()

    lines = audit_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert "contribution_upsert" in lines[0]
    assert "'item_id': 3" in lines[0]


def test_configure_logging_returns_app_logger(audit_file):
    logger = configure_logging()

    assert logger.name == "giftpool"
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
