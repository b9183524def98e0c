"""Shared fixtures."""

import logging

import pytest

from volley.config import HostRecord


@pytest.fixture(autouse=True)
def restore_volley_logger():
    """The runner reconfigures the volley logger; undo it after each test."""
    logger = logging.getLogger("volley")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def make_host():
    def _make_host(hostname="host1", ip="10.0.0.1", port=22, user="cx",
                   password="secret", groupname="web"):
        return HostRecord(hostname, ip, port, user, password, groupname)

    return _make_host
