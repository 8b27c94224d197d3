"""Shared pytest fixtures for leadwire tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from helpers import TEST_JWT_SECRET, TEST_TASK_SECRET, PipelineFixture  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_pipeline():
    """Drop the module-level pipeline so no test sees another's fakes."""
    from leadwire.services import wiring

    wiring.set_pipeline(None)
    yield
    wiring.set_pipeline(None)


@pytest.fixture
def auth_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("INTERNAL_TASK_SECRET", TEST_TASK_SECRET)


@pytest.fixture
def pipeline_fixture():
    """Fake-backed pipeline installed as the app's pipeline."""
    from leadwire.services import wiring

    fixture = PipelineFixture()
    wiring.set_pipeline(fixture.pipeline)
    return fixture
