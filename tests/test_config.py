import pytest

from config import load_settings

REQUIRED = {
    "SUPABASE_URL": "https://example.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "service-key",
    "SUPABASE_BUCKET": "receipts",
    "FRONTEND_URL": "https://a.example.com, https://b.example.com",
}


@pytest.fixture
def env(monkeypatch, tmp_path):
    for name in list(REQUIRED) + ["PORT", "LOG_LEVEL"]:
        monkeypatch.delenv(name, raising=False)
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    return tmp_path / "missing.env"


def test_load_settings(env, monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    settings = load_settings(env)

    assert settings.supabase_url == "https://example.supabase.co"
    assert settings.port == 8080
    assert settings.log_level == "INFO"
    assert settings.allowed_origins == [
        "http://localhost:5173",
        "https://a.example.com",
        "https://b.example.com",
    ]


def test_default_port(env):
    assert load_settings(env).port == 5000


@pytest.mark.parametrize("name", list(REQUIRED))
def test_missing_variable_exits(env, monkeypatch, name):
    monkeypatch.delenv(name)

    with pytest.raises(SystemExit) as exc:
        load_settings(env)

    assert exc.value.code == 1


def test_values_from_env_file(env, monkeypatch, tmp_path):
    monkeypatch.delenv("SUPABASE_BUCKET")
    env_file = tmp_path / ".env"
    env_file.write_text("SUPABASE_BUCKET=from-file\n")

    assert load_settings(env_file).supabase_bucket == "from-file"
