# medtracker/tests/unit/test_logging_utils.py
import logging
from logging.handlers import RotatingFileHandler

import pytest

from medtracker.core.logging_utils import kv, setup_logging


@pytest.fixture
def restore_medtracker_logger():
    logger = logging.getLogger("medtracker")
    saved = (list(logger.handlers), logger.level)
    third_party = {n: logging.getLogger(n).level for n in ("aiogram", "apscheduler")}
    yield
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    for h in saved[0]:
        logger.addHandler(h)
    logger.setLevel(saved[1])
    for n, lvl in third_party.items():
        logging.getLogger(n).setLevel(lvl)


def test_setup_logging_reads_config(tmp_path, restore_medtracker_logger):
    class Cfg:
        AUDIT_LOG_FILE = str(tmp_path / "logs" / "audit.log")
        AUDIT_LOG_MAX_BYTES = 2048
        AUDIT_LOG_BACKUPS = 3
        CONSOLE_LOG_LEVEL = "warning"
        THIRD_PARTY_LOG_LEVEL = "ERROR"

    logger = setup_logging(Cfg)
    setup_logging(Cfg)  # second call replaces, does not stack

    assert len(logger.handlers) == 2
    audit = next(h for h in logger.handlers if isinstance(h, RotatingFileHandler))
    console = next(h for h in logger.handlers if not isinstance(h, RotatingFileHandler))
    assert audit.maxBytes == 2048 and audit.backupCount == 3
    assert audit.level == logging.DEBUG
    assert console.level == logging.WARNING
    assert logging.getLogger("apscheduler").level == logging.ERROR

    logging.getLogger("medtracker.generator").debug("generate.done " + kv(created=2))
    audit.flush()
    text = (tmp_path / "logs" / "audit.log").read_text(encoding="utf-8")
    assert "medtracker.generator — generate.done created=2" in text


def test_unknown_console_level_falls_back_to_info(tmp_path, restore_medtracker_logger):
    class Cfg:
        AUDIT_LOG_FILE = str(tmp_path / "audit.log")
        CONSOLE_LOG_LEVEL = "LOUD"

    logger = setup_logging(Cfg)
    console = next(h for h in logger.handlers if not isinstance(h, RotatingFileHandler))
    assert console.level == logging.INFO


def test_kv_reprs_values():
    assert kv(reminder_id="r1", count=2) == "reminder_id='r1' count=2"
