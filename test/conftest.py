# If you choose to run mcollection's tests with py.test, this is its config.

import logging

import pytest


@pytest.fixture(scope='session', autouse=True)
def setup_test_logging():
    # Exercise the debug logging of every command the tests send.
    logging.getLogger('mcollection').setLevel(logging.DEBUG)
