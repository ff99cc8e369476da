"""Tests for the package logging helpers."""

import io
import logging

import pytest

from material_remapper.dcc.unity_project import logging_utils


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    logging_utils.reset_logging()


def test_configure_logging_formats_records():
    """Records from package modules use the tagged format."""
    stream = io.StringIO()
    logging_utils.configure_logging(logging.DEBUG, stream=stream)

    logging.getLogger("material_remapper.core.lookup").info("hello")

    assert stream.getvalue() == "[MaterialRemapper] INFO: hello\n"


def test_configure_logging_is_idempotent():
    """Repeated calls keep a single handler."""
    logging_utils.configure_logging()
    base = logging_utils.configure_logging(logging.WARNING)

    assert len(base.handlers) == 1
    assert base.level == logging.WARNING
    assert base.propagate is False


@pytest.mark.parametrize(
    ("label", "level"),
    [("Error", logging.ERROR), ("Debug", logging.DEBUG), (logging.INFO, logging.INFO)],
)
def test_set_log_level(label, level):
    """Menu labels and numeric levels are both accepted."""
    assert logging_utils.set_log_level(label) == level
    assert logging.getLogger(logging_utils.BASE_LOGGER_NAME).level == level


def test_set_log_level_rejects_unknown_label():
    """Unknown labels raise ValueError."""
    with pytest.raises(ValueError):
        logging_utils.set_log_level("Verbose")


def test_reset_logging_restores_propagation():
    """Reset hands records back to the root logger."""
    logging_utils.configure_logging()
    logging_utils.reset_logging()

    base = logging.getLogger(logging_utils.BASE_LOGGER_NAME)
    assert base.handlers == []
    assert base.propagate is True
