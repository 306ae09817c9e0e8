from canvasgate.config import GatewaySettings, load_yaml_config

CONFIG_YAML = """
gateway_settings:
  jwt_secret: os.environ/CG_TEST_JWT_SECRET
  complete_rate_limit: 10
  operator_ids:
    - op-1
    - os.environ/CG_TEST_OPERATOR
  anomaly_thresholds:
    requests_per_hour: 40
"""


def test_missing_config_file_is_empty(tmp_path):
    assert load_yaml_config(tmp_path / "absent.yaml") == {}


def test_empty_config_file_is_empty(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")

    assert load_yaml_config(path) == {}


def test_env_tokens_resolve_in_nested_values(tmp_path, monkeypatch):
    monkeypatch.setenv("CG_TEST_JWT_SECRET", "from-the-environment")
    monkeypatch.setenv("CG_TEST_OPERATOR", "op-2")
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)

    config = load_yaml_config(path)

    assert config["gateway_settings"]["jwt_secret"] == "from-the-environment"
    assert config["gateway_settings"]["operator_ids"] == ["op-1", "op-2"]
    assert config["gateway_settings"]["complete_rate_limit"] == 10


def test_unset_env_token_resolves_to_none(tmp_path, monkeypatch):
    monkeypatch.delenv("CG_TEST_JWT_SECRET", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text("gateway_settings:\n  jwt_secret: os.environ/CG_TEST_JWT_SECRET\n")

    assert load_yaml_config(path)["gateway_settings"]["jwt_secret"] is None


def test_from_yaml_builds_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("CG_TEST_JWT_SECRET", "from-the-environment")
    monkeypatch.setenv("CG_TEST_OPERATOR", "op-2")
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)

    settings = GatewaySettings.from_yaml(path)

    assert settings.jwt_secret == "from-the-environment"
    assert settings.operator_ids == ["op-1", "op-2"]
    assert settings.complete_rate_limit == 10
    assert settings.anomaly_thresholds.requests_per_hour == 40
    assert settings.stream_rate_limit == 30


def test_jwt_secret_has_no_default(monkeypatch):
    monkeypatch.delenv("CANVASGATE_JWT_SECRET", raising=False)

    assert GatewaySettings().jwt_secret is None


def test_fallback_key_reads_the_process_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    settings = GatewaySettings()

    assert settings.fallback_key("openai") == "sk-env"
    assert settings.fallback_key("anthropic") is None
    assert settings.fallback_key("mistral") is None
