from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest


@pytest.fixture
def strict_schema(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Turn on strict attribute checking for the duration of a test.

    Settings are frozen and read at import, so the module-level instance
    the document model consults is swapped instead of the environment.
    """
    import quillmark.document.models as models_mod
    from quillmark.settings import Settings

    monkeypatch.setattr(models_mod, "settings", Settings(strict_schema=True))
    yield


@pytest.fixture
def isolated_logging(monkeypatch: pytest.MonkeyPatch) -> Iterator[logging.Logger]:
    """Give a test a clean ``quillmark`` logger and restore it afterwards."""
    import quillmark.logging_setup as logging_setup

    logger = logging.getLogger("quillmark")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    logger.handlers = []
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    try:
        yield logger
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers = saved[0]
        logger.setLevel(saved[1])
        logger.propagate = saved[2]


@pytest.fixture
def sample_quiz_json() -> str:
    return (
        '{"question": "Which are primary colors?", '
        '"options": ["Red", "Blue", "Green"], '
        '"correctAnswers": ["0", "1"], '
        '"explanation": "Red and blue."}'
    )
