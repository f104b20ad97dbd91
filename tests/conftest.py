from src.fleet_auth.core.storage.document_store import _reset_store
from tests.fixtures import *  # noqa: F401,F403


def pytest_runtest_setup(item):
    _reset_store()
