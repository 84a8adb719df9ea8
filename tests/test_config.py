import logging
from logging.handlers import RotatingFileHandler

import pytest

from sa_config import DEFAULT_CONFIG, deep_merge, load_config, setup_logging


def test_defaults_without_file():
    cfg = load_config()
    assert cfg == DEFAULT_CONFIG
    assert cfg is not DEFAULT_CONFIG
    cfg["analyzer"]["address"] = "GPIB3::1"
    assert DEFAULT_CONFIG["analyzer"]["address"] == "GPIB0::18"


def test_missing_file_gives_defaults(tmp_path):
    assert load_config(tmp_path / "nope.yaml") == DEFAULT_CONFIG


def test_user_file_overrides_nested_keys(tmp_path):
    path = tmp_path / "analyzer.yaml"
    path.write_text("analyzer:\n  address: GPIB0::20\nlogging:\n  level: DEBUG\n",
                    encoding="utf-8")
    cfg = load_config(path)
    assert cfg["analyzer"]["address"] == "GPIB0::20"
    assert cfg["analyzer"]["timeout_ms"] == 5000
    assert cfg["logging"] == {"level": "DEBUG", "file": None}


def test_non_mapping_root_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError, match="mapping"):
        load_config(path)


def test_deep_merge_does_not_mutate():
    base = {"a": {"b": 1, "c": 2}, "d": 3}
    merged = deep_merge(base, {"a": {"b": 10}, "e": 4})
    assert merged == {"a": {"b": 10, "c": 2}, "d": 3, "e": 4}
    assert base == {"a": {"b": 1, "c": 2}, "d": 3}


@pytest.fixture
def restore_root_logger(monkeypatch):
    root = logging.getLogger()
    level = root.level
    monkeypatch.setattr(root, "handlers", [])
    yield root
    for h in root.handlers:
        h.close()
    root.setLevel(level)


def test_setup_logging_replaces_handlers(restore_root_logger, tmp_path):
    root = restore_root_logger
    log_file = tmp_path / "logs" / "sa.log"
    setup_logging("debug", log_file)
    setup_logging("debug", log_file)
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 2
    assert sum(isinstance(h, RotatingFileHandler) for h in root.handlers) == 1

    logging.getLogger("spectrum_utils").debug("hello")
    for h in root.handlers:
        h.flush()
    assert "| DEBUG | spectrum_utils | hello" in log_file.read_text(encoding="utf-8")


def test_setup_logging_console_only(restore_root_logger):
    setup_logging("WARNING")
    assert restore_root_logger.level == logging.WARNING
    assert len(restore_root_logger.handlers) == 1


def test_missing_named_file_warns(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="sa_config"):
        assert load_config(tmp_path / "typo.yaml") == DEFAULT_CONFIG
    assert "typo.yaml not found" in caplog.text
