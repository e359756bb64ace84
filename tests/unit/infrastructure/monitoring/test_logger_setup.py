import logging
from logging.handlers import RotatingFileHandler

import pytest

from syncdash.infrastructure.config.settings import set_config_for_testing
from syncdash.infrastructure.monitoring.logger_setup import (
    resolve_log_level, setup_logging, setup_logging_from_config
)

@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    noisy = {name: logging.getLogger(name).level for name in ("httpx", "httpcore")}
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    for name, noisy_level in noisy.items():
        logging.getLogger(name).setLevel(noisy_level)

def test_resolve_log_level():
    assert resolve_log_level("debug") == logging.DEBUG
    assert resolve_log_level("INFO") == logging.INFO
    assert resolve_log_level(None) == logging.WARNING
    assert resolve_log_level("chatty", default=logging.ERROR) == logging.ERROR

def test_setup_logging_replaces_handlers_and_quiets_httpx():
    setup_logging(log_level=logging.DEBUG)

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert logging.getLogger("httpx").level == logging.WARNING

def test_setup_logging_from_config_adds_rotating_file(tmp_path):
    log_file = tmp_path / "syncdash.log"
    set_config_for_testing({"logging.level": "info", "logging.file": str(log_file)})

    setup_logging_from_config()

    root = logging.getLogger()
    assert root.level == logging.INFO
    assert any(isinstance(h, RotatingFileHandler) for h in root.handlers)
