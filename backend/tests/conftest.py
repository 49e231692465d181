import os

# CRITICAL: Set environment variables BEFORE any ctrm imports
# These must be set before ctrm.config.settings is loaded
os.environ["ENVIRONMENT"] = "test"
os.environ["API_V1_STR"] = "/api"  # Ensure /api prefix is used in tests
os.environ.setdefault("DEFAULT_PERIOD_COUNT", "12")

import pytest
from fastapi.testclient import TestClient

from ctrm.main import app


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
