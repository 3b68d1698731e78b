"""Shared pytest fixtures for wadispatch tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from wadispatch.api.factory import create_app  # noqa: E402
from wadispatch.config import WebhookConfig  # noqa: E402
from wadispatch.observability.correlation import correlation_id_var  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_correlation_id():
    """Keep correlation IDs from leaking between tests."""
    token = correlation_id_var.set("")
    yield
    correlation_id_var.reset(token)


@pytest.fixture
def make_client():
    """Build a TestClient for a config, defaulting to unsigned local mode."""

    def _make(**options) -> TestClient:
        options.setdefault("validate_signature", False)
        return TestClient(create_app(WebhookConfig(**options)))

    return _make
