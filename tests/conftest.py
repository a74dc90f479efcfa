"""
Pytest configuration and fixtures for akv-tui tests.
"""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from akv_tui.cache.resources import ResourceCache
from akv_tui.cache.tokens import TokenCache
from akv_tui.config import clear_config_cache
from akv_tui.remote.client import RemoteClient
from akv_tui.remote.models import Vault
from akv_tui.remote.retry import RetryPolicy
from fakes import (
    MANAGEMENT_SCOPE,
    VAULT_SCOPE,
    FakeCredentialProvider,
    FakeTransport,
    make_vault,
    no_sleep,
)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_akv_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point AKV_HOME at an empty temporary directory."""
    akv_home = temp_dir / ".akv"
    akv_home.mkdir()
    monkeypatch.setenv("AKV_HOME", str(akv_home))
    monkeypatch.delenv("AKV_CONFIG", raising=False)
    clear_config_cache()
    yield akv_home
    clear_config_cache()


@pytest.fixture
def vault_a() -> Vault:
    return make_vault("vault-a")


@pytest.fixture
def vault_b() -> Vault:
    return make_vault("vault-b")


@pytest.fixture
def provider() -> FakeCredentialProvider:
    return FakeCredentialProvider()


@pytest.fixture
def transport(vault_a: Vault, vault_b: Vault) -> FakeTransport:
    """Two vaults with a few secrets each."""
    return FakeTransport(
        vault_pages=[[vault_a, vault_b]],
        secrets={
            vault_a.uri: {"db-password": "hunter2", "api-key": "abc", "storage-conn": "xyz"},
            vault_b.uri: {"b-secret": "bbb"},
        },
    )


@pytest.fixture
def client(provider: FakeCredentialProvider, transport: FakeTransport) -> RemoteClient:
    """Remote client over the fakes with instant backoff."""
    tokens = TokenCache(provider)
    return RemoteClient(
        transport,
        tokens,
        management_scope=MANAGEMENT_SCOPE,
        vault_scope=VAULT_SCOPE,
        policy=RetryPolicy(max_attempts=3, backoff_base=0.01, backoff_max=0.05),
        timeout=5.0,
        sleep=no_sleep,
    )


@pytest.fixture
def cache(client: RemoteClient) -> ResourceCache:
    return ResourceCache(client)
