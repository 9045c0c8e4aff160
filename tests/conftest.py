import pytest

from tests.fake_api import FakeApi

API_ENV_VARS = ("API_BASE_URL", "API_TIMEOUT", "API_TOKEN_STORE_PATH", "API_DEBUG")


@pytest.fixture
def clean_env(monkeypatch) -> pytest.MonkeyPatch:
    for key in API_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()
