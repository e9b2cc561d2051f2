"""
RelayConfig Tests

File: tests/gateway/test_config.py
"""

import pytest

from hookrelay.gateway.config import RelayConfig

ENV_KEYS = (
    "RELAY_CONFIG_PATH", "RELAY_HOST", "RELAY_PORT", "RELAY_ADMIN_TOKEN",
    "GATEWAY_HOST", "GATEWAY_PORT", "GATEWAY_TOKEN", "WHATSAPP_HOOK_TOKEN",
    "RELAY_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestRelayConfig:
    """YAML + environment configuration"""

    def test_defaults_without_file(self, tmp_path):
        config = RelayConfig.load(str(tmp_path / "missing.yaml"))

        assert config.gateway_port == 18789
        assert config.gateway_token is None
        assert config.hook_token is None
        assert config.session_timeout_seconds == 10.0
        assert config.linger_seconds == 2.0

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "relay.yaml"
        path.write_text(
            "server:\n"
            "  port: 9000\n"
            "gateway:\n"
            "  host: sandbox\n"
            "  port: 18800\n"
            "  token: gw-secret\n"
            "  session_timeout_seconds: 4\n"
            "  linger_seconds: 0.5\n"
            "webhook:\n"
            "  token: hook-secret\n"
            "  rate_limit:\n"
            "    max_requests: 3\n"
            "    window_seconds: 5\n",
            encoding="utf-8",
        )
        config = RelayConfig.load(str(path))

        assert config.port == 9000
        assert config.gateway_host == "sandbox"
        assert config.gateway_port == 18800
        assert config.gateway_token == "gw-secret"
        assert config.hook_token == "hook-secret"
        assert config.session_timeout_seconds == 4.0
        assert config.linger_seconds == 0.5
        assert config.rate_limit_max_requests == 3
        assert config.rate_limit_window_seconds == 5

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GATEWAY_PORT", "19000")
        monkeypatch.setenv("GATEWAY_TOKEN", "from-env")
        monkeypatch.setenv("WHATSAPP_HOOK_TOKEN", "hook-env")

        config = RelayConfig.load(str(tmp_path / "missing.yaml"))

        assert config.gateway_port == 19000
        assert config.gateway_token == "from-env"
        assert config.hook_token == "hook-env"

    def test_env_var_references(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MY_GW_TOKEN", "expanded")
        path = tmp_path / "relay.yaml"
        path.write_text(
            "gateway:\n"
            "  token: ${MY_GW_TOKEN}\n"
            "webhook:\n"
            "  token: ${UNSET_HOOK_TOKEN}\n",
            encoding="utf-8",
        )
        config = RelayConfig.load(str(path))

        assert config.gateway_token == "expanded"
        assert config.hook_token is None

    def test_invalid_yaml_keeps_defaults(self, tmp_path):
        path = tmp_path / "relay.yaml"
        path.write_text("gateway: [unclosed\n", encoding="utf-8")

        config = RelayConfig.load(str(path))
        assert config.gateway_port == 18789

    def test_empty_sections(self, tmp_path):
        path = tmp_path / "relay.yaml"
        path.write_text(
            "gateway:\n"
            "  port: 19000\n"
            "webhook:\n"
            "  rate_limit:\n"
            "logging:\n"
            "  # level: DEBUG\n",
            encoding="utf-8",
        )
        config = RelayConfig.load(str(path))

        assert config.gateway_port == 19000
        assert config.rate_limit_max_requests == 10
        assert config.log_level == "INFO"

    @pytest.mark.parametrize("document", ["- gateway\n- webhook\n", "just a string\n", "gateway: 5\n"])
    def test_non_mapping_document_keeps_defaults(self, tmp_path, document):
        path = tmp_path / "relay.yaml"
        path.write_text(document, encoding="utf-8")

        config = RelayConfig.load(str(path))
        assert config.gateway_port == 18789

    def test_validate(self):
        RelayConfig().validate()
        with pytest.raises(ValueError):
            RelayConfig(gateway_port=0).validate()
        with pytest.raises(ValueError):
            RelayConfig(linger_seconds=0).validate()

    def test_to_dict_masks_secrets(self):
        config = RelayConfig(gateway_token="gw", hook_token="hook")
        data = config.to_dict()

        assert data["gateway"]["token"] == "***"
        assert data["webhook"]["token"] == "***"
        assert data["server"]["admin_token"] is None
        assert "gw" not in str(data)

    def test_secrets(self):
        config = RelayConfig(gateway_token="gw", hook_token=None)
        assert config.secrets() == {"GATEWAY_TOKEN": "gw"}
