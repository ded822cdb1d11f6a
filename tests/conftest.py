"""Shared test fixtures for the analysis service test suite."""

from __future__ import annotations

import pytest


@pytest.fixture
def test_user_id() -> str:
    return "user-123"


@pytest.fixture
def other_user_id() -> str:
    return "user-456"
