"""Pytest configuration and fixtures for prompt-router tests.

This file intentionally keeps the test environment lean (no extra deps).
To support `async def` tests without pytest-asyncio, we provide a minimal
hook that runs coroutine test functions using the stdlib's asyncio.
"""

import asyncio
import inspect

import pytest

from prompt_router.core.credential_availability import CredentialChecker
from prompt_router.core.health_tracker import HealthTracker
from prompt_router.core.model_catalog import ModelCatalog, ProviderType
from prompt_router.core.router import PromptRouter
from prompt_router.settings import PROVIDER_KEY_ENV_VARS, APISettings, clear_settings_cache

ALL_KEY_ENV_VARS = list(PROVIDER_KEY_ENV_VARS.values()) + ["NOTDIAMOND_API_KEY", "LOGFIRE_TOKEN"]


class FakeClock:
    """Manually advanced clock for cooldown tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_api_settings(*providers: ProviderType, notdiamond: bool = True) -> APISettings:
    """APISettings with keys for the given providers only (no .env lookup)."""
    keys = {PROVIDER_KEY_ENV_VARS[p]: f"test-key-{p.value}" for p in providers}
    if notdiamond:
        keys["NOTDIAMOND_API_KEY"] = "test-key-notdiamond"
    return APISettings(_env_file=None, **keys)


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Keep real API keys, .env files and cached settings out of every test."""
    for name in ALL_KEY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def health_tracker(clock):
    return HealthTracker(failure_threshold=3, cooldown_seconds=300, clock=clock)


@pytest.fixture
def catalog():
    return ModelCatalog()


@pytest.fixture
def api_settings_factory():
    """Build APISettings holding keys for the given providers only."""
    return make_api_settings


@pytest.fixture
def credentials_for():
    """Build a CredentialChecker that knows keys for the given providers only."""

    def _make(*providers: ProviderType) -> CredentialChecker:
        return CredentialChecker(make_api_settings(*providers))

    return _make


@pytest.fixture
def all_credentials():
    return CredentialChecker(make_api_settings(*ProviderType))


@pytest.fixture
def router(catalog, health_tracker, all_credentials):
    return PromptRouter(catalog, health_tracker, all_credentials)


def pytest_pyfunc_call(pyfuncitem: pytest.Item) -> bool | None:
    """Enable running `async def` tests without external plugins.

    If the test function is a coroutine function, execute it via asyncio.run.
    """
    test_func = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_func):
        kwargs = {
            name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
        }
        asyncio.run(test_func(**kwargs))
        return True
    return None
