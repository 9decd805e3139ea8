import pytest

@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("BLICALC_PRECISION", "BLICALC_LOG_LEVEL", "BLICALC_HOST", "BLICALC_PORT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BLICALC_HISTORY_FILE", str(tmp_path / "history"))

@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.when == "call":
        print(f"TEST: {item.name} - {'PASSED' if report.passed else 'FAILED'}")
