import json

import pytest

from bddexec.config import DEFAULT_BASE_URL, ApiSettings, load_settings


def test_defaults_when_no_file(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    settings = load_settings(env={})
    assert settings == ApiSettings()
    assert settings.base_url == DEFAULT_BASE_URL
    assert "ExecuteStream" in settings.endpoint_table()


def test_appsettings_json_in_cwd(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "appsettings.json").write_text(
        json.dumps(
            {
                "Api": {
                    "BaseUrl": "http://runner:9000/",
                    "ApiKey": "abc",
                    "TimeoutSeconds": 15,
                    "Endpoints": {"TestPlan": "plans/{testCaseId}", "ExecuteCode": "run?script_type={script_type}"},
                },
                "Logging": {"LogLevel": {"Default": "Information"}},
            },
            indent="\t",
        ),
        encoding="utf-8",
    )
    settings = load_settings(env={})
    assert settings.base_url == "http://runner:9000/"
    assert settings.api_key == "abc"
    assert settings.timeout_seconds == 15.0
    assert settings.resolver().resolve("testplan", {"testCaseId": "TC1"}) == "plans/TC1"
    assert "ExecuteStream" not in settings.endpoint_table()


def test_yaml_file_and_env_overrides(tmp_path) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text("Api:\n  BaseUrl: http://from-file/\n  ApiKey: file-key\n", encoding="utf-8")
    env = {"BDDEXEC_CONFIG": str(config), "BDDEXEC_BASE_URL": "https://from-env/"}
    settings = load_settings(env=env)
    assert settings.base_url == "https://from-env/"
    assert settings.api_key == "file-key"


def test_explicit_missing_file_is_an_error(tmp_path) -> None:
    with pytest.raises(ValueError, match="not found"):
        load_settings(str(tmp_path / "missing.yaml"), env={})


def test_invalid_settings_are_rejected(tmp_path) -> None:
    config = tmp_path / "bad.json"
    config.write_text(json.dumps({"Api": {"TimeoutSeconds": -1}}), encoding="utf-8")
    with pytest.raises(ValueError, match="TimeoutSeconds"):
        load_settings(str(config), env={})


def test_unparseable_settings_are_rejected(tmp_path) -> None:
    config = tmp_path / "bad.json"
    config.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="not valid"):
        load_settings(str(config), env={})
