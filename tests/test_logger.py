import logging

import pytest

from toasttalk import logger as log_setup
from toasttalk.config import Config


@pytest.fixture
def fresh_root(monkeypatch):
    root = logging.getLogger(log_setup.ROOT_LOGGER)
    saved = (root.handlers[:], root.level, root.propagate)
    root.handlers = []
    monkeypatch.setattr(log_setup, "_configured", False)
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers, root.level, root.propagate = saved


def test_file_logging(fresh_root, tmp_path):
    log_file = tmp_path / "logs" / "toasttalk.log"
    config = Config({"logging": {"level": "debug", "file": str(log_file), "console": False}})

    log = log_setup.get_logger("toasttalk.test", config)
    log.debug("hello from the test")
    for handler in fresh_root.handlers:
        handler.flush()

    assert fresh_root.level == logging.DEBUG
    assert not fresh_root.propagate
    assert "toasttalk.test - DEBUG - hello from the test" in log_file.read_text()


def test_configured_once(fresh_root):
    config = Config({"logging": {"console": True}})
    log_setup.get_logger("toasttalk.a", config)
    log_setup.get_logger("toasttalk.b", config)
    assert len(fresh_root.handlers) == 1


def test_file_only_mode_drops_console(fresh_root, tmp_path, monkeypatch):
    monkeypatch.setenv("TOASTTALK_LOG_FILE_ONLY", "1")
    monkeypatch.chdir(tmp_path)
    log_setup.configure(Config())

    assert [type(h) for h in fresh_root.handlers] == [logging.FileHandler]
    assert (tmp_path / "logs").is_dir()
