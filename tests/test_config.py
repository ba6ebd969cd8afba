import json

import pytest

from modpacker.config import DependencyPolicy, Settings, load_settings
from modpacker.exceptions import ConfigParseError, ConfigValidationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CURSEFORGE_API_KEY", "GITHUB_TOKEN", "MODPACKER_DEPENDENCY_POLICY"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_file(tmp_path):
    settings = load_settings(root=tmp_path)
    assert settings == Settings()
    assert settings.dependency_policy is DependencyPolicy.EAGER


def test_toml_file_found_in_root(tmp_path):
    (tmp_path / "modpacker.toml").write_text(
        'curseforge_api_key = "key"\ndependency_policy = "best-effort"\nmax_retries = 5\n',
        encoding="utf-8",
    )
    settings = load_settings(root=tmp_path)
    assert settings.curseforge_api_key == "key"
    assert settings.dependency_policy is DependencyPolicy.BEST_EFFORT
    assert settings.max_retries == 5


def test_yaml_and_json(tmp_path):
    yaml_path = tmp_path / "settings.yaml"
    yaml_path.write_text("github_token: abc\nmax_concurrent_downloads: 4\n", encoding="utf-8")
    assert load_settings(yaml_path).max_concurrent_downloads == 4

    json_path = tmp_path / "settings.json"
    json_path.write_text(json.dumps({"retry_delay": 0.5}), encoding="utf-8")
    assert load_settings(json_path).retry_delay == 0.5


def test_environment_overrides(tmp_path, monkeypatch):
    (tmp_path / "modpacker.toml").write_text('curseforge_api_key = "file"\n', encoding="utf-8")
    monkeypatch.setenv("CURSEFORGE_API_KEY", "env")
    monkeypatch.setenv("GITHUB_TOKEN", "token")
    monkeypatch.setenv("MODPACKER_DEPENDENCY_POLICY", "best_effort")

    settings = load_settings(root=tmp_path)

    assert settings.curseforge_api_key == "env"
    assert settings.github_token == "token"
    assert settings.dependency_policy is DependencyPolicy.BEST_EFFORT


@pytest.mark.parametrize(
    "data",
    [
        {"unknown_key": 1},
        {"max_retries": 0},
        {"max_concurrent_downloads": "ten"},
        {"retry_delay": -1},
        {"dependency_policy": "sometimes"},
    ],
)
def test_invalid_settings(data):
    with pytest.raises(ConfigValidationError):
        Settings.from_dict(data)


def test_explicit_missing_file(tmp_path):
    with pytest.raises(ConfigParseError):
        load_settings(tmp_path / "nope.toml")


def test_malformed_and_unsupported_files(tmp_path):
    broken = tmp_path / "modpacker.toml"
    broken.write_text("max_retries = ", encoding="utf-8")
    with pytest.raises(ConfigParseError):
        load_settings(broken)

    ini = tmp_path / "settings.ini"
    ini.write_text("[x]", encoding="utf-8")
    with pytest.raises(ConfigParseError):
        load_settings(ini)
