import pytest

from feedback_platform.services.mock_store import reset_mock_store


@pytest.fixture(autouse=True)
def _reset_store() -> None:
    reset_mock_store()
    yield
    reset_mock_store()
