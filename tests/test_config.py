from __future__ import annotations

import json
from pathlib import Path

import pytest

from switchboard.config import DirectorySettings, Settings, load_settings
from switchboard.errors import ConfigurationError


def test_defaults(settings: Settings) -> None:
    assert settings.qa is False
    assert settings.default_lang == "en"
    assert settings.swb_api is None
    assert settings.sms_tag is None
    assert settings.metric_store == "default"
    assert settings.valid_user_addresses == []
    assert settings.request_timeout_seconds == 15.0


def test_load_settings_reads_json_file_and_overrides(tmp_path: Path) -> None:
    config_file = tmp_path / "switchboard.json"
    config_file.write_text(
        json.dumps(
            {
                "swb_api": {"url": "http://swb.test/api/", "username": "user", "password": "pass"},
                "sms_tag": ["longcode", "default10001"],
                "valid_user_addresses": ["^2557"],
                "metric_store": "hnp",
            }
        ),
        encoding="utf-8",
    )

    settings = load_settings(config_file, metric_store="override", _env_file=None)

    assert settings.swb_api == DirectorySettings(url="http://swb.test/api/", username="user", password="pass")
    assert settings.sms_tag == ("longcode", "default10001")
    assert settings.valid_user_addresses == ["^2557"]
    assert settings.metric_store == "override"


def test_environment_variables_use_prefix_and_nesting(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SWITCHBOARD_QA", "true")
    monkeypatch.setenv("SWITCHBOARD_SWB_API__URL", "http://env.test/")

    settings = Settings(_env_file=None)

    assert settings.qa is True
    assert settings.swb_api is not None
    assert settings.swb_api.url == "http://env.test/"


def test_load_settings_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Cannot read"):
        load_settings(tmp_path / "missing.json")

    not_object = tmp_path / "list.json"
    not_object.write_text("[]", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="JSON object"):
        load_settings(not_object)

    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps({"sms_tag": ["only-one"]}), encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_settings(invalid, _env_file=None)
