from unittest.mock import AsyncMock

import pytest

from helpers.fakes import FakeBackend, MockRepository, sample_survey
from survey_engine.storage import MemoryStorage


@pytest.fixture
def mock_db():
    """AsyncMock standing in for AsyncSession — flush/commit are no-ops."""
    return AsyncMock()


@pytest.fixture
def mock_repo():
    """Fresh MockRepository for each test."""
    return MockRepository()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def survey():
    return sample_survey()


@pytest.fixture
def backend(survey):
    """FakeBackend with the sample survey published as ``team-feedback``."""
    return FakeBackend(public={"team-feedback": survey})
