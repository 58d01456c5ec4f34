import os

import pytest


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # Keep a developer's .env / shell from leaking into config tests
    for var in ("SOURCE_DB", "SOURCE_TABLE", "DESTINATION_DB", "DESTINATION_TABLE", "CONDITION", "DUMP_DIR"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def integration_dsn():
    dsn = os.getenv("VCTRANSFER_TEST_DSN")
    if not dsn:
        pytest.skip("set VCTRANSFER_TEST_DSN to run tests against a real PostgreSQL")
    return dsn
