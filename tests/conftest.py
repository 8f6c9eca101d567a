"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any import that might load settings,
so every test runs against the in-memory counting store, broker and
document collections.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("APP_SERVICE_NAME", "post")
os.environ.setdefault("APP_ADMIN_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_ADMIN_API_KEYS", "test-admin-key-123,test-admin-key-456")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("BROKER_BACKEND", "memory")
os.environ.setdefault("MONGO_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest

from socialhub.core.config import settings
from socialhub.core.dependencies import reset_dependencies


@pytest.fixture(autouse=True)
def _fresh_singletons():
    """Give every test its own budgets, collections and event relay."""
    reset_dependencies()
    yield
    reset_dependencies()


@pytest.fixture
def restore_settings():
    """Snapshot mutable settings sections and restore them after the test."""
    snapshot = {
        "app": settings.app.model_copy(),
        "rate_limit": settings.rate_limit.model_copy(),
        "broker": settings.broker.model_copy(),
        "mongo": settings.mongo.model_copy(),
    }
    yield settings
    for name, value in snapshot.items():
        setattr(settings, name, value)
