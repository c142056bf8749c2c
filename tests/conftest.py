import sys
from pathlib import Path

import pytest
from dotenv import dotenv_values

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

_TEST_ENV = {
    "TEST_DB_NAME": "evu_backend_test",
    "JWT_SECRET": "test-jwt-secret-key-for-testing-only",
    "LOG_LEVEL": "ERROR",
}
_TEST_ENV.update({k: v for k, v in dotenv_values(ROOT / ".env.test").items() if v is not None})

# Real credentials and endpoints must never reach the probes under test.
_CLEARED = (
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_PROJECT_REF",
    "SUPABASE_DB_PASSWORD",
    "DATABASE_URL",
    "DIRECT_URL",
    "API_URL",
    "LOCAL_BASE_URL",
    "POOLER_REGIONS",
    "POOLER_PORTS",
    "DNS_SERVICES",
)


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    from evu_diag.config import get_settings

    for key, value in _TEST_ENV.items():
        monkeypatch.setenv(key, value)
    for key in _CLEARED:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(ROOT / "tests")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def anyio_backend():
    return "asyncio"
