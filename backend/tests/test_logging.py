from __future__ import annotations

import logging

import pytest

from core.config import Settings
from core.logging import SCHEDULING_LOGGERS, configure_scheduling_loggers, setup_logging


@pytest.fixture(autouse=True)
def _reset_scheduling_loggers():
    yield
    configure_scheduling_loggers(None)


def test_solver_level_applies_to_scheduling_loggers():
    setup_logging(environment="development", solver_level="warning")

    for name in SCHEDULING_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING
    assert logging.getLogger("solver.csp_solver").getEffectiveLevel() == logging.WARNING


def test_solver_level_can_be_reset():
    configure_scheduling_loggers("DEBUG")
    configure_scheduling_loggers(None)

    assert logging.getLogger("solver").level == logging.NOTSET


def test_unknown_solver_level_is_rejected():
    with pytest.raises(ValueError):
        configure_scheduling_loggers("LOUD")


def test_solver_log_level_setting_is_normalized():
    assert Settings(solver_log_level=" info ").solver_log_level == "INFO"
    assert Settings(solver_log_level="").solver_log_level is None
