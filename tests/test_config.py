import json

import pytest

from mindmesh.config import Settings, load_settings, save_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("MINDMESH_SERVER_URL", "MINDMESH_TOKEN", "MINDMESH_OFFLINE"):
        monkeypatch.delenv(name, raising=False)


def test_from_json_ignores_unknown_fields():
    settings = Settings.from_json(json.dumps({"server_url": "http://x", "theme": "dark"}))
    assert settings.server_url == "http://x"
    assert settings.update_debounce_ms == 300


def test_from_json_tolerates_garbage():
    assert Settings.from_json("{not json") == Settings()
    assert Settings.from_json("[1, 2]") == Settings()
    assert Settings.from_json(None) == Settings()


def test_credential_is_never_written(tmp_path):
    path = tmp_path / "config.json"
    save_settings(Settings(auth_token="secret", update_debounce_ms=150), path)
    assert "secret" not in path.read_text()
    loaded = load_settings(path)
    assert loaded.auth_token is None
    assert loaded.update_debounce_ms == 150


def test_missing_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / "absent.json") == Settings()


def test_environment_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"server_url": "http://file"}))
    monkeypatch.setenv("MINDMESH_SERVER_URL", "http://env")
    monkeypatch.setenv("MINDMESH_TOKEN", "tok")
    monkeypatch.setenv("MINDMESH_OFFLINE", "1")

    settings = load_settings(path)

    assert settings.server_url == "http://env"
    assert settings.auth_token == "tok"
    assert settings.offline
