"""Logging setup unit tests."""

from action_throttle import LogSection, configure_logging


def test_configure_json_logging() -> None:
    """JSON rendering is configured."""
    logger = configure_logging(LogSection(level="INFO", format="json"))
    assert logger is not None


def test_configure_text_logging() -> None:
    """Console rendering is configured."""
    logger = configure_logging(LogSection(level="DEBUG", format="text"))
    assert logger is not None


def test_configure_defaults() -> None:
    """No section means the defaults."""
    logger = configure_logging()
    bound = logger.bind(key="value")
    assert bound is not None
