import logging

from blicalc.config import DEFAULT_PRECISION, configure_logging, load_config


def test_defaults(tmp_path):
    config = load_config()
    assert config.precision == DEFAULT_PRECISION
    assert config.log_level == "WARNING"
    assert config.port == 8000
    # conftest points the history file into tmp_path
    assert config.history_file == str(tmp_path / "history")


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("BLICALC_PRECISION", "3")
    monkeypatch.setenv("BLICALC_LOG_LEVEL", "debug")
    monkeypatch.setenv("BLICALC_PORT", "9001")
    config = load_config()
    assert config.precision == 3
    assert config.log_level == "DEBUG"
    assert config.port == 9001


def test_invalid_numbers_fall_back_with_warning(monkeypatch, caplog):
    monkeypatch.setenv("BLICALC_PRECISION", "abc")
    monkeypatch.setenv("BLICALC_PORT", "0")
    with caplog.at_level(logging.WARNING, logger="blicalc.config"):
        config = load_config()
    assert config.precision == DEFAULT_PRECISION
    assert config.port == 8000
    assert "BLICALC_PRECISION" in caplog.text
    assert "BLICALC_PORT" in caplog.text


def test_negative_precision_is_ignored(monkeypatch):
    monkeypatch.setenv("BLICALC_PRECISION", "-2")
    assert load_config().precision == DEFAULT_PRECISION


def test_configure_logging_accepts_unknown_level():
    configure_logging("NOT_A_LEVEL")
