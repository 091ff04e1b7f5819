import pytest

from tests.mocks.fetchers import AsyncRecordingFetcher, RecordingFetcher


@pytest.fixture(autouse=True)
def test_set_env(monkeypatch):
    monkeypatch.delenv("SUPERLOADER_LOG_LEVEL", raising=False)


@pytest.fixture
def fetcher() -> RecordingFetcher:
    """
    Create an identity fetch function that records its calls.
    """
    return RecordingFetcher()


@pytest.fixture
def async_fetcher() -> AsyncRecordingFetcher:
    """
    Create an async identity fetch function that records its calls.
    """
    return AsyncRecordingFetcher()
