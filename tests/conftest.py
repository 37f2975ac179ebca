import pytest

from branchportal.database import create_session_factory
from branchportal.trader_service import TraderService


@pytest.fixture
def session_factory():
    # every call builds a fresh in-memory database
    return create_session_factory("sqlite://")


@pytest.fixture
def service(session_factory):
    return TraderService(session_factory, max_upload_rows=1000)
