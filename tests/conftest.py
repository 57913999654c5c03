# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import sessionflow  # noqa: F401
except ImportError:
    raise ImportError("sessionflow is not installed. Run: pip install -e '.[test]'") from None

import logging
import os

import pytest
import structlog

from sessionflow.client import SessionClient
from sessionflow.config import ClientConfig
from sessionflow.host import HostNavigator
from tests._http_helpers import BASE_URL, FakeApi


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep developer SESSIONFLOW_* variables out of tests."""
    for var in list(os.environ):
        if var.startswith("SESSIONFLOW_"):
            monkeypatch.delenv(var, raising=False)


@pytest.fixture
def reset_logging():
    """Restore root logging and structlog after tests that configure them."""
    root = logging.getLogger()
    old_handlers = root.handlers[:]
    old_level = root.level
    yield
    root.handlers = old_handlers
    root.setLevel(old_level)
    structlog.reset_defaults()


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def navigator() -> HostNavigator:
    return HostNavigator("/dashboard")


@pytest.fixture
async def client(api, navigator):
    """A SessionClient wired to the fake API with an in-memory cookie jar."""
    async with SessionClient(
        ClientConfig(base_url=BASE_URL),
        navigator=navigator,
        transport=api.transport(),
    ) as c:
        yield c
