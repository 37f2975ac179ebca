import logging

from branchportal import config


def test_int_settings_default_when_unset(monkeypatch):
    monkeypatch.delenv("BATCH_CHUNK_SIZE", raising=False)
    monkeypatch.delenv("MAX_UPLOAD_ROWS", raising=False)
    assert config.get_batch_chunk_size() == 400
    assert config.get_max_upload_rows() == 1000


def test_int_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("BATCH_CHUNK_SIZE", "50")
    assert config.get_batch_chunk_size() == 50


def test_malformed_int_setting_logs_warning(monkeypatch, caplog):
    monkeypatch.setenv("BATCH_CHUNK_SIZE", "lots")
    with caplog.at_level(logging.WARNING, logger="branchportal.config"):
        assert config.get_batch_chunk_size() == 400
    assert "BATCH_CHUNK_SIZE" in caplog.text


def test_non_positive_int_setting_logs_warning(monkeypatch, caplog):
    monkeypatch.setenv("MAX_UPLOAD_ROWS", "0")
    with caplog.at_level(logging.WARNING, logger="branchportal.config"):
        assert config.get_max_upload_rows() == 1000
    assert "MAX_UPLOAD_ROWS" in caplog.text
