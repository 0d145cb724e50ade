"""Tests for settings.py and logging_setup.py."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pytest


class TestEnvParsing:
    """Environment values fall back to defaults when unusable."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("1", True), ("Yes", True), (" on ", True), ("0", False), ("off", False), ("maybe", True)],
    )
    def test_env_bool(self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
        from quillmark.settings import _env_bool

        monkeypatch.setenv("QUILLMARK_TEST_FLAG", raw)
        assert _env_bool("QUILLMARK_TEST_FLAG", default=True) is expected

    def test_env_bool_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from quillmark.settings import _env_bool

        monkeypatch.delenv("QUILLMARK_TEST_FLAG", raising=False)
        assert _env_bool("QUILLMARK_TEST_FLAG") is False

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("12", 12), ("", 32), ("abc", 32), ("0", 1), ("-5", 1)],
    )
    def test_env_int(self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: int) -> None:
        from quillmark.settings import _env_int

        monkeypatch.setenv("QUILLMARK_TEST_INT", raw)
        assert _env_int("QUILLMARK_TEST_INT", 32, minimum=1) == expected

    def test_env_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from quillmark.settings import _env_path

        monkeypatch.setenv("QUILLMARK_TEST_PATH", "/tmp/q.log")
        assert str(_env_path("QUILLMARK_TEST_PATH")) == "/tmp/q.log"
        monkeypatch.delenv("QUILLMARK_TEST_PATH")
        assert _env_path("QUILLMARK_TEST_PATH") is None

    def test_settings_are_frozen(self) -> None:
        from dataclasses import FrozenInstanceError

        from quillmark.settings import Settings

        with pytest.raises(FrozenInstanceError):
            Settings().strict_schema = True  # type: ignore[misc]


class TestConfigureLogging:
    """Handlers are installed once on the package logger."""

    def test_installs_stream_handler(self, isolated_logging: logging.Logger, monkeypatch) -> None:
        import quillmark.logging_setup as logging_setup
        from quillmark.settings import Settings

        monkeypatch.setattr(logging_setup, "settings", Settings(log_path=None))
        logging_setup.configure_logging("debug")

        assert len(isolated_logging.handlers) == 1
        assert isolated_logging.level == logging.DEBUG
        assert isolated_logging.propagate is False

    def test_idempotent(self, isolated_logging: logging.Logger, monkeypatch) -> None:
        import quillmark.logging_setup as logging_setup
        from quillmark.settings import Settings

        monkeypatch.setattr(logging_setup, "settings", Settings(log_path=None))
        logging_setup.configure_logging()
        logging_setup.configure_logging("error")

        assert len(isolated_logging.handlers) == 1
        assert isolated_logging.level == logging.ERROR

    def test_rotating_file_handler(self, isolated_logging: logging.Logger, monkeypatch, tmp_path) -> None:
        import quillmark.logging_setup as logging_setup
        from quillmark.settings import Settings

        log_path = tmp_path / "logs" / "quillmark.log"
        monkeypatch.setattr(logging_setup, "settings", Settings(log_path=log_path))
        logging_setup.configure_logging("info")
        logging.getLogger("quillmark.test").info("hello file")

        file_handlers = [h for h in isolated_logging.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        file_handlers[0].flush()
        assert "hello file" in log_path.read_text(encoding="utf-8")
