import json

from lekhoni.cli import main

from tests.utils import logger_to_stderr

from .utils import write_config


def test_config_check_json_success(capsys, tmp_path):
    config_file = write_config(tmp_path)

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "config", "check", "--format", "json"])

    assert exit_code == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "ok"
    assert payload["config_path"].endswith("config.toml")
    assert any("force_local" in warning for warning in payload["warnings"])


def test_config_check_missing_file(capsys, tmp_path):
    missing_path = tmp_path / "absent.toml"

    with logger_to_stderr():
        exit_code = main(["--config", str(missing_path), "config", "check", "--format", "json"])

    assert exit_code == 2
    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "error"
    assert payload["error"]["type"] == "missing_file"


def test_config_check_validation_error_text(capsys, tmp_path):
    config_file = write_config(tmp_path, extra='\n[web]\nport = "not-a-port"\n')

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "config", "check"])

    assert exit_code == 3
    err = capsys.readouterr().err
    assert "Configuration error (validation_error)" in err
    assert "web.port" in err


def test_config_check_text_lists_warnings(capsys, tmp_path):
    config_file = write_config(tmp_path)

    with logger_to_stderr():
        exit_code = main(["--config", str(config_file), "config", "check"])

    assert exit_code == 0
    err = capsys.readouterr().err
    assert "Configuration OK" in err
    assert "Admin endpoints are not protected" in err


def test_config_explain_json(capsys):
    exit_code = main(["config", "explain", "--format", "json"])

    assert exit_code == 0
    names = {item["name"] for item in json.loads(capsys.readouterr().out)["fields"]}
    assert {"storage.key_prefix", "remote.project_id", "web.auth.token", "assistant.language"} <= names
